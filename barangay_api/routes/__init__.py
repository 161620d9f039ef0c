# SPDX-License-Identifier: Apache-2.0

"""
HTTP endpoints, one blueprint per resource.
"""
