"""RADIUS Protocol Constants.

Packet codes and attribute types from RFC 2865 (Authentication), RFC 2866
(Accounting), RFC 5176 (Dynamic Authorization) and the Microsoft
vendor-specific attributes of RFC 2548 that carry MS-CHAPv2.
"""

# Packet Codes (RFC 2865 §4.1, RFC 5176 §3)
RADIUS_ACCESS_REQUEST = 1  #: Access-Request packet code
RADIUS_ACCESS_ACCEPT = 2  #: Access-Accept packet code
RADIUS_ACCESS_REJECT = 3  #: Access-Reject packet code
RADIUS_ACCOUNTING_REQUEST = 4  #: Accounting-Request packet code
RADIUS_ACCOUNTING_RESPONSE = 5  #: Accounting-Response packet code
RADIUS_ACCESS_CHALLENGE = 11  #: Access-Challenge packet code
RADIUS_STATUS_SERVER = 12  #: Status-Server packet code (RFC 5997)
RADIUS_STATUS_CLIENT = 13  #: Status-Client packet code
RADIUS_DISCONNECT_REQUEST = 40
RADIUS_DISCONNECT_ACK = 41
RADIUS_DISCONNECT_NAK = 42
RADIUS_COA_REQUEST = 43
RADIUS_COA_ACK = 44
RADIUS_COA_NAK = 45

# Codes whose authenticator field is a Response Authenticator
RESPONSE_CODES = frozenset(
    {
        RADIUS_ACCESS_ACCEPT,
        RADIUS_ACCESS_REJECT,
        RADIUS_ACCESS_CHALLENGE,
        RADIUS_ACCOUNTING_RESPONSE,
        RADIUS_DISCONNECT_ACK,
        RADIUS_DISCONNECT_NAK,
        RADIUS_COA_ACK,
        RADIUS_COA_NAK,
    }
)

# Request codes whose authenticator is MD5(header + zeros + attrs + secret)
HASHED_REQUEST_CODES = frozenset(
    {RADIUS_ACCOUNTING_REQUEST, RADIUS_DISCONNECT_REQUEST, RADIUS_COA_REQUEST}
)

KNOWN_CODES = (
    RESPONSE_CODES
    | HASHED_REQUEST_CODES
    | {RADIUS_ACCESS_REQUEST, RADIUS_STATUS_SERVER, RADIUS_STATUS_CLIENT}
)

CODE_NAMES = {
    RADIUS_ACCESS_REQUEST: "Access-Request",
    RADIUS_ACCESS_ACCEPT: "Access-Accept",
    RADIUS_ACCESS_REJECT: "Access-Reject",
    RADIUS_ACCOUNTING_REQUEST: "Accounting-Request",
    RADIUS_ACCOUNTING_RESPONSE: "Accounting-Response",
    RADIUS_ACCESS_CHALLENGE: "Access-Challenge",
    RADIUS_STATUS_SERVER: "Status-Server",
    RADIUS_STATUS_CLIENT: "Status-Client",
    RADIUS_DISCONNECT_REQUEST: "Disconnect-Request",
    RADIUS_DISCONNECT_ACK: "Disconnect-ACK",
    RADIUS_DISCONNECT_NAK: "Disconnect-NAK",
    RADIUS_COA_REQUEST: "CoA-Request",
    RADIUS_COA_ACK: "CoA-ACK",
    RADIUS_COA_NAK: "CoA-NAK",
}

# Packet limits
RADIUS_HEADER_LENGTH = 20
MAX_RADIUS_PACKET_LENGTH = 4096  # RFC 2865 maximum
AUTHENTICATOR_LENGTH = 16

# Standard RADIUS Attribute Types (RFC 2865 §5)
ATTR_USER_NAME = 1
ATTR_USER_PASSWORD = 2
ATTR_CHAP_PASSWORD = 3
ATTR_NAS_IP_ADDRESS = 4
ATTR_NAS_PORT = 5
ATTR_SERVICE_TYPE = 6
ATTR_REPLY_MESSAGE = 18
ATTR_STATE = 24
ATTR_CLASS = 25
ATTR_VENDOR_SPECIFIC = 26
ATTR_CALLED_STATION_ID = 30
ATTR_CALLING_STATION_ID = 31
ATTR_NAS_IDENTIFIER = 32
ATTR_ACCT_STATUS_TYPE = 40
ATTR_ACCT_SESSION_ID = 44
ATTR_EAP_MESSAGE = 79
ATTR_MESSAGE_AUTHENTICATOR = 80

# Vendor IDs (RFC 2865 §5.26)
VENDOR_MICROSOFT = 311

# Microsoft VSA types (RFC 2548 §2)
MS_CHAP_RESPONSE = 1
MS_CHAP_ERROR = 2
MS_CHAP_CHALLENGE = 11
MS_CHAP2_RESPONSE = 25
MS_CHAP2_SUCCESS = 26
