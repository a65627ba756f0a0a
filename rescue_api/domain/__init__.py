# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the rescue coordination platform.

Transition rules and validation helpers are pure functions; the request and
team services orchestrate them against the persistence gateway.
"""
