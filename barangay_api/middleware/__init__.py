# SPDX-License-Identifier: Apache-2.0

"""
Middleware package for request processing.

Authentication, request validation and the error envelope.
"""
