"""Tests for the upload client against the API application."""
from datetime import datetime

import httpx
import pytest

from finance_tracker.batch_processor import SourceFile
from finance_tracker.client import REQUEST_FAILED, TransactionApiClient
from finance_tracker.models import NormalizedTransaction


def make_transaction(description, **overrides):
    data = {
        "type": "expense",
        "amount": 12.5,
        "category": "Food",
        "date": datetime(2024, 3, 2),
        "description": description,
    }
    data.update(overrides)
    return NormalizedTransaction(**data)


@pytest.fixture
def api_client(settings, client):
    return TransactionApiClient(settings.model_copy(update={"bulk_chunk_size": 2}), http_client=client)


def test_submit_bulk(api_client):
    response = api_client.submit_bulk([make_transaction("one"), make_transaction("two")])

    assert response.success_count == 2
    assert response.error_count == 0
    assert response.message == "2 succeeded, 0 failed"
    assert [t.description for t in api_client.list_transactions()] == ["one", "two"]


def test_indices_refer_to_whole_submission(api_client):
    """Server indices are per request; the client maps them back."""
    transactions = [make_transaction(f"t{i}") for i in range(5)]
    # Too long for the store, rejected server side
    transactions[3] = make_transaction("x" * 201)

    response = api_client.submit_bulk(transactions)

    assert response.total_count == 5
    assert [entry.index for entry in response.results.success] == [0, 1, 2, 4]
    assert [entry.index for entry in response.results.errors] == [3]
    assert response.results.errors[0].error == "Description must not exceed 200 characters"


def test_transport_failure_marks_every_record(settings):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    http = httpx.Client(transport=httpx.MockTransport(handler))
    api_client = TransactionApiClient(settings, http_client=http)
    transactions = [make_transaction("a"), make_transaction("b")]

    response = api_client.submit_bulk(transactions)

    assert response.success_count == 0
    assert response.error_count == 2
    assert [(e.index, e.error) for e in response.results.errors] == [
        (0, REQUEST_FAILED),
        (1, REQUEST_FAILED),
    ]
    assert response.results.errors[1].data["description"] == "b"


def test_server_error_status_fails_only_that_chunk(settings):
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(500, json={"error": "Error processing bulk transactions"})
        return httpx.Response(200, json={
            "message": "Bulk upload completed: 1 successful, 0 errors",
            "totalCount": 1,
            "successCount": 1,
            "errorCount": 0,
            "results": {
                "success": [{
                    "index": 0,
                    "transaction": {
                        "id": "abc",
                        "type": "expense",
                        "amount": 12.5,
                        "category": "Food",
                        "date": "2024-03-02T00:00:00",
                        "description": "c",
                        "createdAt": "2024-03-02T10:00:00Z",
                        "updatedAt": "2024-03-02T10:00:00Z",
                    },
                }],
                "errors": [],
            },
        })

    http = httpx.Client(transport=httpx.MockTransport(handler))
    api_client = TransactionApiClient(
        settings.model_copy(update={"bulk_chunk_size": 2}), http_client=http
    )

    response = api_client.submit_bulk([make_transaction("a"), make_transaction("b"), make_transaction("c")])

    assert [e.index for e in response.results.errors] == [0, 1]
    assert [s.index for s in response.results.success] == [2]
    assert response.message == "1 succeeded, 2 failed"


def test_unexpected_response_body_is_a_transport_failure(settings):
    http = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>")))
    api_client = TransactionApiClient(settings, http_client=http)

    response = api_client.submit_bulk([make_transaction("a")])

    assert response.results.errors[0].error == REQUEST_FAILED


def test_process_files(api_client, sample_csv_content):
    updates = []

    result = api_client.process_files(
        [SourceFile("january.csv", sample_csv_content.encode())],
        on_progress=updates.append,
    )

    assert len(result.accepted) == 2
    assert len(result.rejected) == 2
    assert updates == [1.0]


def test_close_leaves_injected_client_open(settings):
    http = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, json=[])))

    with TransactionApiClient(settings, http_client=http) as api_client:
        assert api_client.list_transactions() == []

    assert not http.is_closed
