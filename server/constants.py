"""Centralized constants for node kinds, step identifiers and the condition grammar.

This module provides a single source of truth for the string sets shared by the
graph validator, the scheduler, the step registry and the condition sandbox.
"""

from typing import FrozenSet

# =============================================================================
# NODE KINDS
# =============================================================================

NODE_KIND_TRIGGER = 'trigger'
NODE_KIND_ACTION = 'action'
NODE_KIND_CONDITION = 'condition'
NODE_KIND_TRANSFORM = 'transform'

# =============================================================================
# CONDITION BRANCHES
# =============================================================================

BRANCH_TRUE = 'true'
BRANCH_FALSE = 'false'

BRANCH_VALUES: FrozenSet[str] = frozenset([BRANCH_TRUE, BRANCH_FALSE])

# =============================================================================
# STEP IDENTIFIERS
# =============================================================================

# Trigger steps: pass the trigger input through as the trigger node's output
WORKFLOW_TRIGGER_TYPES: FrozenSet[str] = frozenset([
    'manual',
    'webhook',
    'schedule',
])

DEFAULT_TRIGGER_TYPE = 'manual'

# =============================================================================
# CONDITION SANDBOX
# =============================================================================

# Methods callable on workflow variables inside condition expressions
CONDITION_ZERO_ARG_METHODS: FrozenSet[str] = frozenset([
    'toLowerCase',
    'toUpperCase',
    'trim',
    'toString',
])

CONDITION_ONE_ARG_METHODS: FrozenSet[str] = frozenset([
    'includes',
    'startsWith',
    'endsWith',
])

# `length` is a property, but authors write it in method position often enough
# that the validator lists it alongside the callable methods.
CONDITION_ALLOWED_METHODS: FrozenSet[str] = (
    CONDITION_ZERO_ARG_METHODS |
    CONDITION_ONE_ARG_METHODS |
    frozenset(['length'])
)

CONDITION_LITERAL_KEYWORDS: FrozenSet[str] = frozenset([
    'true',
    'false',
    'null',
    'undefined',
])

# Property names that never resolve, even on workflow variables
CONDITION_FORBIDDEN_PROPERTIES: FrozenSet[str] = frozenset([
    'constructor',
    '__proto__',
    'prototype',
])
