"""Integration tests for the session, the loop thread and real providers."""

import time

import pytest
from chatbranch import Chatbranch
from chatbranch.callbacks import _view
from chatbranch.catalog import Catalog
from chatbranch.config import Settings
from chatbranch.layout import Minimal
from chatbranch.llm import Echo, Router
from chatbranch.models import ASSISTANT_ROLE, USER_ROLE


def wait_for_streams(app, timeout=5.0):
    deadline = time.monotonic() + timeout
    while app.runner.call(lambda: app.session.generating):
        if time.monotonic() > deadline:
            raise AssertionError("Streams did not finish in time")
        time.sleep(0.01)


@pytest.fixture
def router_app():
    llm = Router(
        {
            "echo-fast": Echo(default_model="echo-fast", delay=0),
            "echo-slow": Echo(default_model="echo-slow", delay=0.2),
        }
    )
    app = Chatbranch(
        layout=Minimal(),
        llm=llm,
        catalog=Catalog.from_ids(["echo-fast", "echo-slow"]),
        settings=Settings(default_models="echo-fast,echo-slow"),
    )
    yield app
    app.runner.stop()


class TestSessionEchoIntegration:
    """Drive the session the way the Dash callbacks do."""

    def test_basic_conversation_flow_with_echo(self, test_app):
        submission = test_app.runner.call(test_app.session.send, "Hello, Echo!")
        assert submission is not None

        wait_for_streams(test_app)
        messages = test_app.runner.call(test_app.session.snapshot)

        assert [m.role for m in messages] == [USER_ROLE, ASSISTANT_ROLE]
        assert messages[0].content == "Hello, Echo!"
        assert "Echo LLM" in messages[1].content
        assert messages[1].content.endswith("Hello, Echo!")
        assert messages[1].done is True
        assert messages[1].model == "echo-v1"

    def test_multi_turn_conversation(self, test_app):
        test_app.runner.call(test_app.session.submit, "First message")
        wait_for_streams(test_app)
        test_app.runner.call(test_app.session.submit, "Second message")
        wait_for_streams(test_app)

        messages = test_app.runner.call(test_app.session.snapshot)

        assert len(messages) == 4
        assert messages[0].content == "First message"
        assert messages[2].content == "Second message"
        assert messages[3].content.endswith("Second message")

    def test_view_drains_notifications(self, test_app):
        test_app.runner.call(test_app.session.submit, "")

        first = test_app.runner.call(_view, test_app.session)
        second = test_app.runner.call(_view, test_app.session)

        assert [n.message for n in first["notifications"]] == ["Please enter a prompt"]
        assert second["notifications"] == []
        assert first["messages"] == []
        assert first["generating"] is False
        assert first["title"] == "chatbranch"


class TestMultiModelIntegration:
    def test_fan_out_to_routed_providers(self, router_app):
        session = router_app.session
        submission = router_app.runner.call(session.submit, "Compare us")

        wait_for_streams(router_app)
        replies = router_app.runner.call(
            lambda: [
                session.tree.get(message_id).model_copy()
                for message_id in submission.tasks
            ]
        )

        assert [reply.model for reply in replies] == ["echo-fast", "echo-slow"]
        assert all(reply.done and reply.error is None for reply in replies)
        assert all(reply.content.endswith("Compare us") for reply in replies)

    def test_stop_one_model_mid_stream(self, router_app):
        session = router_app.session
        submission = router_app.runner.call(session.submit, "Stop the slow one")
        fast_id, slow_id = submission.tasks

        assert router_app.runner.call(session.stop, slow_id) is True
        wait_for_streams(router_app)
        fast, slow = router_app.runner.call(
            lambda: [
                session.tree.get(fast_id).model_copy(),
                session.tree.get(slow_id).model_copy(),
            ]
        )

        assert fast.content.endswith("Stop the slow one")
        assert slow.done is True
        assert slow.error is None
        assert not slow.content.endswith("Stop the slow one")

    def test_view_reports_running_messages(self, router_app):
        session = router_app.session
        submission = router_app.runner.call(session.submit, "Are you running?")
        slow_id = list(submission.tasks)[1]

        view = router_app.runner.call(_view, session)

        assert view["generating"] is True
        assert slow_id in view["running"]
        assert view["title"] == "Are you running? • chatbranch"

        router_app.runner.call(session.stop_all)
        wait_for_streams(router_app)

    def test_new_chat_while_streaming(self, router_app):
        session = router_app.session
        router_app.runner.call(session.submit, "Forget me")

        router_app.runner.call(session.new_chat)
        wait_for_streams(router_app)

        assert router_app.runner.call(lambda: len(session.tree)) == 0
        selected = router_app.runner.call(lambda: session.selected_models)
        assert selected == ["echo-fast", "echo-slow"]
