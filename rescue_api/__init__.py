# SPDX-License-Identifier: Apache-2.0

"""
Rescue coordination API: rescue request triage and team dispatch.
"""

__version__ = "1.0.0"
