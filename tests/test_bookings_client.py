import unittest

import requests

from breserve import bookings_client as bc
from breserve.bookings_client import BookingsApiClient
from breserve.errors import RemoteApiError


class DummyResp:
    def __init__(self, payload=None, status_code=200, text=""):
        self._payload = payload
        self.status_code = status_code
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class TestBookingsApiClient(unittest.TestCase):
    def setUp(self):
        self._orig_request = bc.requests.request
        self.calls = []
        self.responses = []

        def fake_request(method, url, params=None, json=None, headers=None, timeout=None):
            self.calls.append({"method": method, "url": url, "params": params, "json": json, "headers": headers})
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response

        bc.requests.request = fake_request
        self.client = BookingsApiClient("https://project.supabase.co/", "anon", retry_initial_delay=0)

    def tearDown(self):
        bc.requests.request = self._orig_request

    def test_fetch_user_bookings(self):
        self.responses.append(DummyResp([{"id": "b-2"}, {"id": "b-1"}]))
        rows = self.client.fetch_user_bookings("user-1")
        self.assertEqual([r["id"] for r in rows], ["b-2", "b-1"])
        call = self.calls[0]
        self.assertEqual(call["method"], "GET")
        self.assertEqual(call["url"], "https://project.supabase.co/rest/v1/bookings")
        self.assertEqual(call["params"]["user_id"], "eq.user-1")
        self.assertEqual(call["params"]["order"], "created_at.desc")
        self.assertEqual(call["headers"]["apikey"], "anon")
        self.assertEqual(call["headers"]["Authorization"], "Bearer anon")

    def test_access_token_overrides_bearer(self):
        client = BookingsApiClient("https://project.supabase.co", "anon", access_token="jwt")
        self.responses.append(DummyResp([]))
        client.fetch_user_bookings("user-1")
        self.assertEqual(self.calls[0]["headers"]["Authorization"], "Bearer jwt")
        self.assertEqual(self.calls[0]["headers"]["apikey"], "anon")

    def test_mutations_target_rows_by_id(self):
        self.responses.extend([DummyResp(status_code=201), DummyResp(status_code=204), DummyResp(status_code=204)])
        self.client.insert_booking({"id": "b-1", "guests": 2})
        self.client.update_booking("b-1", {"id": "b-1", "guests": 3})
        self.client.delete_booking("b-1")
        self.assertEqual([c["method"] for c in self.calls], ["POST", "PATCH", "DELETE"])
        self.assertEqual(self.calls[0]["json"], {"id": "b-1", "guests": 2})
        self.assertEqual(self.calls[1]["params"], {"id": "eq.b-1"})
        self.assertEqual(self.calls[2]["params"], {"id": "eq.b-1"})

    def test_http_error_raises_with_status(self):
        self.responses.append(DummyResp(status_code=409, text="duplicate key"))
        with self.assertRaises(RemoteApiError) as ctx:
            self.client.insert_booking({"id": "b-1"})
        self.assertEqual(ctx.exception.status_code, 409)

    def test_connection_errors_are_retried(self):
        self.responses.extend([requests.exceptions.ConnectionError("offline"), DummyResp([])])
        self.assertEqual(self.client.fetch_user_bookings("user-1"), [])
        self.assertEqual(len(self.calls), 2)

    def test_unreachable_after_retries(self):
        self.responses.extend([requests.exceptions.Timeout("slow")] * 3)
        with self.assertRaises(RemoteApiError):
            self.client.fetch_user_bookings("user-1")

    def test_unexpected_payload(self):
        self.responses.append(DummyResp({"message": "not a list"}))
        with self.assertRaises(RemoteApiError):
            self.client.fetch_user_bookings("user-1")

    def test_booking_without_id_is_rejected(self):
        for rows in ([{"id": "b-1"}, {"status": "confirmed"}], [["b-1"]]):
            self.responses.append(DummyResp(rows))
            with self.assertRaises(RemoteApiError):
                self.client.fetch_user_bookings("user-1")


if __name__ == "__main__":
    unittest.main()
