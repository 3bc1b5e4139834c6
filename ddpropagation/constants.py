"""
This module contains constants used across ddpropagation.

Constants that should NOT be referenced by ddpropagation users are marked with a leading underscore.
"""
_PROPAGATION_ERROR_KEY = "_dd.propagation_error"

# Use this to explicitly inform the backend that a trace should be rejected and not stored.
USER_REJECT = -1
# Used by the builtin sampler to inform the backend that a trace should be rejected and not stored.
AUTO_REJECT = 0
# Used by the builtin sampler to inform the backend that a trace should be kept and stored.
AUTO_KEEP = 1
# Use this to explicitly inform the backend that a trace should be kept and stored.
USER_KEEP = 2

# Origin set by the Synthetics product; such traces are valid without a parent span id
SYNTHETICS_ORIGIN = "synthetics"
