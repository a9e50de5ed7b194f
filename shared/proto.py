from dnslib import DNSError, DNSRecord, QTYPE

# Port the device sends its queries to
DNS_PORT = 53
DEFAULT_UPSTREAM_PORT = 1053
DEFAULT_UPSTREAM = "violet.wiilink24.com:1053"

# recvfrom buffer; larger datagrams are truncated
MAX_DATAGRAM = 0x8000

# Seconds a session may wait for its reply
SESSION_TTL = 5


def describe_query(payload: bytes) -> str:
    """Short human summary of a DNS payload for verbose logs. Never raises."""
    try:
        record = DNSRecord.parse(payload)
    except (DNSError, ValueError, IndexError):
        return f"{len(payload)} bytes (unparsed)"
    if not record.questions:
        return f"id={record.header.id} (no question)"
    q = record.questions[0]
    return f"id={record.header.id} {q.qname} {QTYPE.get(q.qtype, q.qtype)}"
