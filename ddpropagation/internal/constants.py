PROPAGATION_STYLE_DATADOG = "datadog"
PROPAGATION_STYLE_B3_MULTI = "b3multi"
PROPAGATION_STYLE_B3 = "b3"
_PROPAGATION_STYLE_W3C_TRACECONTEXT = "tracecontext"
_PROPAGATION_STYLE_NONE = "none"

W3C_TRACESTATE_KEY = "tracestate"
W3C_TRACEPARENT_KEY = "traceparent"
W3C_TRACESTATE_ORIGIN_KEY = "o"
W3C_TRACESTATE_SAMPLING_PRIORITY_KEY = "s"
W3C_TRACESTATE_TAG_PREFIX = "t."
# tracestate list member limits: https://www.w3.org/TR/trace-context/#tracestate-limits
W3C_TRACESTATE_MAX_LENGTH = 256
W3C_TRACESTATE_MAX_LIST_MEMBERS = 32

# Trace tags with this prefix are propagated downstream
PROPAGATED_TAG_PREFIX = "_dd.p."
HIGHER_ORDER_TRACE_ID_BITS = "_dd.p.tid"

DEFAULT_X_DATADOG_TAGS_MAX_LENGTH = 512
# Incoming x-datadog-tags longer than this are not parsed at all
X_DATADOG_TAGS_EXTRACT_MAX_LENGTH = 512

MAX_UINT_64BITS = (1 << 64) - 1


class SamplingMechanism(object):
    UNKNOWN = -1
    DEFAULT = 0
    AGENT_RATE_BY_SERVICE = 1
    LOCAL_USER_TRACE_SAMPLING_RULE = 3
    MANUAL = 4
    APPSEC = 5

# HTTP headers one should set for distributed tracing.
# These are cross-language (eg: Python, Go and other implementations should honor these)
HTTP_HEADER_TRACE_ID = "x-datadog-trace-id"
HTTP_HEADER_PARENT_ID = "x-datadog-parent-id"
HTTP_HEADER_SAMPLING_PRIORITY = "x-datadog-sampling-priority"
HTTP_HEADER_ORIGIN = "x-datadog-origin"
HTTP_HEADER_TAGS = "x-datadog-tags"
HTTP_BAGGAGE_PREFIX = "ot-baggage-"
