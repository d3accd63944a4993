"""Unit tests for PubSubClient against a mocked REST API."""

import asyncio
import json

import httpx
import pytest
import respx

from gcloud_pubsub.client import PubSubClient
from gcloud_pubsub.config.models import PubSubConfig
from gcloud_pubsub.errors import InvalidNameError, NotFoundError, TransportError

ROOT = "https://pubsub.googleapis.com/v1"
EMULATOR_ROOT = "http://localhost:8085/v1"


class TestServiceRoot:
    def test_production_root_by_default(self, production_config: PubSubConfig):
        client = PubSubClient(httpx.AsyncClient(), "proj", config=production_config)
        assert client.root_url == "https://pubsub.googleapis.com/"
        assert client.project == "proj"

    def test_emulator_from_config(self):
        config = PubSubConfig(emulator_host="localhost:8085")
        client = PubSubClient(httpx.AsyncClient(), "proj", config=config)
        assert client.root_url == "http://localhost:8085/"

    def test_emulator_from_environment(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PUBSUB_EMULATOR_HOST", "127.0.0.1:8681")
        client = PubSubClient(httpx.AsyncClient(), "proj")
        assert client.root_url == "http://127.0.0.1:8681/"

    def test_root_fixed_at_construction(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("PUBSUB_EMULATOR_HOST", raising=False)
        client = PubSubClient(httpx.AsyncClient(), "proj")
        monkeypatch.setenv("PUBSUB_EMULATOR_HOST", "localhost:8085")
        assert client.root_url == "https://pubsub.googleapis.com/"

    @pytest.mark.parametrize("project", ["", "a/b"])
    def test_invalid_project(self, project: str, production_config: PubSubConfig):
        with pytest.raises(InvalidNameError):
            PubSubClient(httpx.AsyncClient(), project, config=production_config)

    def test_scopes(self):
        assert "https://www.googleapis.com/auth/pubsub" in PubSubClient.SCOPES

    @pytest.mark.asyncio
    @respx.mock
    async def test_emulator_receives_calls(self):
        route = respx.get(f"{EMULATOR_ROOT}/projects/proj/topics/t1").mock(
            return_value=httpx.Response(200, json={"name": "projects/proj/topics/t1"})
        )
        config = PubSubConfig(emulator_host="localhost:8085")
        async with httpx.AsyncClient() as http:
            topic = await PubSubClient(http, "proj", config=config).lookup_topic("t1")
        assert route.called
        assert topic.absolute_name == "projects/proj/topics/t1"


class TestTopics:
    @pytest.mark.asyncio
    @respx.mock
    async def test_create_topic(self, production_config: PubSubConfig):
        route = respx.put(f"{ROOT}/projects/proj/topics/t1").mock(
            return_value=httpx.Response(200, json={"name": "projects/proj/topics/t1"})
        )
        async with httpx.AsyncClient() as http:
            client = PubSubClient(http, "proj", config=production_config)
            topic = await client.create_topic("t1")
        assert route.called
        assert topic.name == "t1"
        assert topic.project == "proj"
        assert topic.absolute_name == "projects/proj/topics/t1"

    @pytest.mark.asyncio
    @respx.mock
    async def test_lookup_missing_topic_raises_not_found(
        self, production_config: PubSubConfig
    ):
        respx.get(f"{ROOT}/projects/proj/topics/missing").mock(
            return_value=httpx.Response(404, json={"error": {"message": "not found"}})
        )
        async with httpx.AsyncClient() as http:
            client = PubSubClient(http, "proj", config=production_config)
            with pytest.raises(NotFoundError):
                await client.lookup_topic("missing")

    @pytest.mark.asyncio
    @respx.mock
    async def test_lookup_absolute_name(self, production_config: PubSubConfig):
        route = respx.get(f"{ROOT}/projects/other/topics/t9").mock(
            return_value=httpx.Response(200, json={"name": "projects/other/topics/t9"})
        )
        async with httpx.AsyncClient() as http:
            client = PubSubClient(http, "proj", config=production_config)
            topic = await client.lookup_topic("projects/other/topics/t9")
        assert route.called
        assert topic.project == "other"

    @pytest.mark.asyncio
    async def test_invalid_name_raised_before_remote_call(self, fake_transport, pubsub):
        with pytest.raises(InvalidNameError):
            await pubsub.lookup_topic("projects/proj/subscriptions/s1")
        assert fake_transport.calls == []

    @pytest.mark.asyncio
    @respx.mock
    async def test_delete_topic(self, production_config: PubSubConfig):
        route = respx.delete(f"{ROOT}/projects/proj/topics/t1").mock(
            return_value=httpx.Response(200, json={})
        )
        async with httpx.AsyncClient() as http:
            client = PubSubClient(http, "proj", config=production_config)
            await client.delete_topic("t1")
        assert route.called

    @pytest.mark.asyncio
    @respx.mock
    async def test_page_topics_follows_cursor(self, production_config: PubSubConfig):
        def _respond(request: httpx.Request) -> httpx.Response:
            token = request.url.params.get("pageToken")
            assert request.url.params["pageSize"] == "2"
            if token is None:
                return httpx.Response(
                    200,
                    json={
                        "topics": [
                            {"name": "projects/proj/topics/a"},
                            {"name": "projects/proj/topics/b"},
                        ],
                        "nextPageToken": "cursor-1",
                    },
                )
            assert token == "cursor-1"
            return httpx.Response(
                200, json={"topics": [{"name": "projects/proj/topics/c"}]}
            )

        respx.get(f"{ROOT}/projects/proj/topics").mock(side_effect=_respond)
        async with httpx.AsyncClient() as http:
            client = PubSubClient(http, "proj", config=production_config)
            first = await client.page_topics(page_size=2)
            assert [t.name for t in first.items] == ["a", "b"]
            assert not first.is_last
            second = await first.next()
            assert second is not None
            assert [t.name for t in second.items] == ["c"]
            assert second.is_last
            assert await second.next() is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_topics_is_lazy_and_restartable(
        self, production_config: PubSubConfig
    ):
        route = respx.get(f"{ROOT}/projects/proj/topics").mock(
            return_value=httpx.Response(
                200,
                json={"topics": [{"name": "projects/proj/topics/a"}], "nextPageToken": ""},
            )
        )
        async with httpx.AsyncClient() as http:
            client = PubSubClient(http, "proj", config=production_config)
            iterator = client.list_topics()
            assert not route.called
            assert [t.name async for t in iterator] == ["a"]
            assert [t.name async for t in client.list_topics()] == ["a"]
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_transport_error_propagates(self, production_config: PubSubConfig):
        respx.put(f"{ROOT}/projects/proj/topics/t1").mock(
            return_value=httpx.Response(403, text="forbidden")
        )
        async with httpx.AsyncClient() as http:
            client = PubSubClient(http, "proj", config=production_config)
            with pytest.raises(TransportError, match="403"):
                await client.create_topic("t1")


class TestSubscriptions:
    @pytest.mark.asyncio
    @respx.mock
    async def test_create_pull_subscription(self, production_config: PubSubConfig):
        route = respx.put(f"{ROOT}/projects/proj/subscriptions/s1").mock(
            return_value=httpx.Response(
                200,
                json={
                    "name": "projects/proj/subscriptions/s1",
                    "topic": "projects/proj/topics/t1",
                    "pushConfig": {},
                    "ackDeadlineSeconds": 10,
                },
            )
        )
        async with httpx.AsyncClient() as http:
            client = PubSubClient(http, "proj", config=production_config)
            sub = await client.create_subscription("s1", "t1")
        assert json.loads(route.calls[0].request.content) == {
            "topic": "projects/proj/topics/t1"
        }
        assert sub.is_pull
        assert not sub.is_push
        assert sub.endpoint is None
        assert sub.topic.absolute_name == "projects/proj/topics/t1"

    @pytest.mark.asyncio
    @respx.mock
    async def test_create_push_subscription(self, production_config: PubSubConfig):
        endpoint = "https://example.com/push"
        route = respx.put(f"{ROOT}/projects/proj/subscriptions/s1").mock(
            return_value=httpx.Response(
                200,
                json={
                    "name": "projects/proj/subscriptions/s1",
                    "topic": "projects/proj/topics/t1",
                    "pushConfig": {"pushEndpoint": endpoint},
                },
            )
        )
        async with httpx.AsyncClient() as http:
            client = PubSubClient(http, "proj", config=production_config)
            sub = await client.create_subscription("s1", "t1", endpoint=endpoint)
        body = json.loads(route.calls[0].request.content)
        assert body["pushConfig"] == {"pushEndpoint": endpoint}
        assert sub.is_push
        assert sub.endpoint == endpoint

    @pytest.mark.asyncio
    @respx.mock
    async def test_lookup_subscription(self, production_config: PubSubConfig):
        respx.get(f"{ROOT}/projects/proj/subscriptions/s1").mock(
            return_value=httpx.Response(
                200,
                json={
                    "name": "projects/proj/subscriptions/s1",
                    "topic": "projects/proj/topics/t1",
                    "pushConfig": {"pushEndpoint": "https://example.com/push"},
                },
            )
        )
        async with httpx.AsyncClient() as http:
            client = PubSubClient(http, "proj", config=production_config)
            sub = await client.lookup_subscription("projects/proj/subscriptions/s1")
        assert sub.name == "s1"
        assert sub.topic.name == "t1"
        assert sub.is_push

    @pytest.mark.asyncio
    @respx.mock
    async def test_lookup_missing_subscription(self, production_config: PubSubConfig):
        respx.get(f"{ROOT}/projects/proj/subscriptions/nope").mock(
            return_value=httpx.Response(404)
        )
        async with httpx.AsyncClient() as http:
            client = PubSubClient(http, "proj", config=production_config)
            with pytest.raises(NotFoundError):
                await client.lookup_subscription("nope")

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_subscriptions_of_topic(self, production_config: PubSubConfig):
        listing = respx.get(f"{ROOT}/projects/proj/topics/t1/subscriptions").mock(
            return_value=httpx.Response(
                200,
                json={
                    "subscriptions": [
                        "projects/proj/subscriptions/s1",
                        "projects/proj/subscriptions/gone",
                    ]
                },
            )
        )
        respx.get(f"{ROOT}/projects/proj/subscriptions/s1").mock(
            return_value=httpx.Response(
                200,
                json={
                    "name": "projects/proj/subscriptions/s1",
                    "topic": "projects/proj/topics/t1",
                },
            )
        )
        respx.get(f"{ROOT}/projects/proj/subscriptions/gone").mock(
            return_value=httpx.Response(404)
        )
        async with httpx.AsyncClient() as http:
            client = PubSubClient(http, "proj", config=production_config)
            subs = [s async for s in client.list_subscriptions("t1")]
        assert listing.called
        assert len(respx.calls) == 3
        assert [s.name for s in subs] == ["s1"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_all_subscriptions(self, production_config: PubSubConfig):
        respx.get(f"{ROOT}/projects/proj/subscriptions").mock(
            return_value=httpx.Response(
                200,
                json={
                    "subscriptions": [
                        {
                            "name": "projects/proj/subscriptions/s1",
                            "topic": "projects/proj/topics/t1",
                        },
                        {
                            "name": "projects/proj/subscriptions/s2",
                            "topic": "projects/proj/topics/t2",
                            "pushConfig": {"pushEndpoint": "https://example.com"},
                        },
                    ]
                },
            )
        )
        async with httpx.AsyncClient() as http:
            client = PubSubClient(http, "proj", config=production_config)
            subs = [s async for s in client.list_subscriptions()]
        assert [(s.name, s.is_push) for s in subs] == [("s1", False), ("s2", True)]

    def test_list_subscriptions_invalid_query_raises_immediately(self, pubsub):
        with pytest.raises(InvalidNameError):
            pubsub.list_subscriptions("projects/proj/subscriptions/s1")


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_publish_pull_acknowledge(self, fake_transport, pubsub):
        topic = await pubsub.create_topic("t1")
        sub = await pubsub.create_subscription("s1", "t1")
        await topic.publish_string("hi", {"lang": "en"})

        event = await sub.pull()
        assert event is not None
        assert event.message.as_string == "hi"
        assert event.message.attributes == {"lang": "en"}

        await event.acknowledge()
        assert event.acknowledged
        assert fake_transport.outstanding == {}

        await event.acknowledge()
        ack_calls = [c for c in fake_transport.calls if c[1].endswith(":acknowledge")]
        assert len(ack_calls) == 1

    @pytest.mark.asyncio
    async def test_lookup_missing_topic(self, pubsub):
        with pytest.raises(NotFoundError):
            await pubsub.lookup_topic("missing")

    @pytest.mark.asyncio
    async def test_deleted_topic_handle_fails_not_found(self, pubsub):
        topic = await pubsub.create_topic("t1")
        await topic.delete()
        with pytest.raises(NotFoundError):
            await topic.publish_string("late")
        with pytest.raises(NotFoundError):
            await pubsub.lookup_topic("t1")

    @pytest.mark.asyncio
    async def test_deleted_subscription_handle_fails_not_found(self, pubsub):
        await pubsub.create_topic("t1")
        sub = await pubsub.create_subscription("s1", "t1")
        await pubsub.delete_subscription("s1")
        with pytest.raises(NotFoundError):
            await sub.pull(wait=False)
        with pytest.raises(NotFoundError):
            await sub.delete()

    @pytest.mark.asyncio
    async def test_list_paginates_all_topics(self, pubsub):
        for name in ("a", "b", "c", "d", "e"):
            await pubsub.create_topic(name)
        page = await pubsub.page_topics(page_size=2)
        assert len(page.items) == 2
        names = [t.name async for t in page]
        assert names == ["a", "b", "c", "d", "e"]

    @pytest.mark.asyncio
    async def test_page_subscriptions_by_topic(self, pubsub):
        await pubsub.create_topic("t1")
        await pubsub.create_topic("t2")
        await pubsub.create_subscription("s1", "t1")
        await pubsub.create_subscription("s2", "t2", endpoint="https://example.com/p")
        page = await pubsub.page_subscriptions(topic="projects/proj/topics/t2")
        assert page.is_last
        assert [(s.name, s.endpoint) for s in page.items] == [
            ("s2", "https://example.com/p")
        ]


class _LookupTransport:
    """Lists two subscriptions of a topic; one lookup fails, the other hangs."""

    SLOW = "projects/proj/subscriptions/slow"
    BAD = "projects/proj/subscriptions/bad"

    def __init__(self) -> None:
        self.cancelled: list[str] = []
        self.finished: list[str] = []

    async def send(self, method, path, body=None, params=None):
        if path == "projects/proj/topics/t1/subscriptions":
            return {"subscriptions": [self.SLOW, self.BAD]}
        if path == self.BAD:
            raise TransportError("boom", status_code=500, method=method, path=path)
        try:
            await asyncio.sleep(0.05)
        except asyncio.CancelledError:
            self.cancelled.append(path)
            raise
        self.finished.append(path)
        return {"name": path, "topic": "projects/proj/topics/t1"}


class TestTopicSubscriptionLookups:
    @pytest.mark.asyncio
    async def test_failed_lookup_cancels_the_others(self):
        transport = _LookupTransport()
        client = PubSubClient.from_transport(transport, "proj")
        with pytest.raises(TransportError) as exc_info:
            await client.page_subscriptions("t1")
        assert exc_info.value.status_code == 500
        await asyncio.sleep(0.1)
        assert transport.cancelled == [_LookupTransport.SLOW]
        assert transport.finished == []
