from services.payloads import (
    PAYLOAD_VERSION,
    ActivityDetails,
    Malformed,
    Ok,
    ProposalData,
    encode_payload,
    parse_payload,
)


def test_empty_payload_is_none() -> None:
    assert parse_payload(None, ActivityDetails) is None
    assert parse_payload("", ActivityDetails) is None


def test_valid_payload_is_ok() -> None:
    result = parse_payload('{"oldStatus": "pending", "newStatus": "sent", "unknown": 1}', ActivityDetails)

    assert isinstance(result, Ok)
    assert result.value.old_status == "pending"
    assert result.value.new_status == "sent"
    assert result.value.version == PAYLOAD_VERSION


def test_corrupt_payload_is_malformed_not_empty() -> None:
    raw = "{not json"
    result = parse_payload(raw, ActivityDetails)

    assert isinstance(result, Malformed)
    assert result.raw == raw
    assert result.error


def test_wrong_shape_is_malformed() -> None:
    assert isinstance(parse_payload('["a", "b"]', ActivityDetails), Malformed)
    assert isinstance(parse_payload('{"total": "lots"}', ProposalData), Malformed)


def test_proposal_data_keeps_unmodelled_fields() -> None:
    result = parse_payload('{"clientName": "Acme", "total": 1500, "services": ["hauling"]}', ProposalData)

    assert isinstance(result, Ok)
    dumped = result.value.model_dump(exclude_none=True, by_alias=True)
    assert dumped["clientName"] == "Acme"
    assert dumped["total"] == 1500
    assert dumped["services"] == ["hauling"]


def test_encoded_payload_reads_back() -> None:
    encoded = encode_payload(ActivityDetails(ticket_number="TKT-9", source="portal"))

    result = parse_payload(encoded, ActivityDetails)
    assert isinstance(result, Ok)
    assert result.value.ticket_number == "TKT-9"
    assert "null" not in encoded
