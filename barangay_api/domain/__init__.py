# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the barangay records API.

This package contains pure business logic functions with no side effects.
Collaborators (signature lookup, storage) are passed in so every function
is testable without external dependencies.
"""
