# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Tests for batch intake and grouping.

Malformed envelopes, unrelated events and malformed keys are dropped;
valid records become signing requests grouped by PAI ARN.
"""

import json

from dac_issuer.intake import intake, parse_notification, requests_from_message

from fakes import s3_record, sqs_message


def test_valid_record_becomes_request():
    """A put notification for a well-formed key yields one request."""
    message = sqs_message("msg1", [s3_record("arn%3Apca/PAIArn/1001/request+1.csr")])

    requests = requests_from_message(message)

    assert len(requests) == 1
    request = requests[0]
    assert request.key.render() == "arn:pca/PAIArn/1001/request 1.csr"
    assert request.bucket == "bucket"
    assert request.object_version == "version"
    assert request.queue_message_id == "msg1"


def test_invalid_json_body_skipped():
    """A body that is not JSON is dropped, not failed."""
    assert requests_from_message({"messageId": "msg2", "body": "blah"}) == []


def test_json_without_records_skipped():
    """Test events from the object store carry no records."""
    body = json.dumps({"Service": "Amazon S3", "Event": "s3:TestEvent"})
    assert requests_from_message({"messageId": "msg3", "body": body}) == []


def test_lowercase_records_accepted():
    body = json.dumps({"records": [s3_record("a/b/1/x.csr")]})
    notification = parse_notification(body)
    assert len(notification.records) == 1


def test_wrong_event_source_skipped():
    message = sqs_message("msg1", [s3_record("a/b/1/x.csr", source="aws:dynamodb")])
    assert requests_from_message(message) == []


def test_wrong_event_name_skipped():
    message = sqs_message("msg1", [s3_record("a/b/1/x.csr", name="ObjectRemoved:Delete")])
    assert requests_from_message(message) == []


def test_malformed_key_skipped():
    message = sqs_message("msg1", [s3_record("key"), s3_record("a/b/1/x.csr")])

    requests = requests_from_message(message)

    assert [r.key.render() for r in requests] == ["a/b/1/x.csr"]


def test_record_without_object_entity_skipped():
    record = s3_record("a/b/1/x.csr")
    del record["s3"]
    assert requests_from_message(sqs_message("msg1", [record])) == []


def test_unversioned_object():
    message = sqs_message("msg1", [s3_record("a/b/1/x.csr", version=None)])
    assert requests_from_message(message)[0].object_version is None


def test_records_inherit_message_id():
    """Every record of one queue message reports failures under that message."""
    message = sqs_message("msg1", [s3_record("a/b/1/x.csr"), s3_record("a/b/1/y.csr")])

    requests = requests_from_message(message)

    assert {r.queue_message_id for r in requests} == {"msg1"}


def test_grouping_by_ca_in_first_seen_order():
    """Requests sharing a PAI ARN land in the same group; groups keep first-seen order."""
    messages = [
        sqs_message("m1", [s3_record("ca/two/1/a.csr")]),
        sqs_message("m2", [s3_record("ca/one/1/b.csr"), s3_record("ca/two/2/c.csr")]),
        {"messageId": "m3", "body": "not json"},
        sqs_message("m4", [s3_record("ca/one/1/d.csr")]),
    ]

    groups = intake(messages)

    assert list(groups) == ["ca/two", "ca/one"]
    assert [r.key.base_name for r in groups["ca/two"]] == ["a", "c"]
    assert [r.key.base_name for r in groups["ca/one"]] == ["b", "d"]
    assert [r.queue_message_id for r in groups["ca/one"]] == ["m2", "m4"]


def test_empty_batch():
    assert intake([]) == {}
