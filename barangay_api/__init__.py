# SPDX-License-Identifier: Apache-2.0

"""
Barangay Records API.

Approval queue, status workflow and certificate issuance for barangay
certificate requests, blotter cases and incident reports.
"""

__version__ = "1.0.0"
