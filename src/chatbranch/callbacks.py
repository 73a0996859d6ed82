"""Callbacks wiring the Dash UI to the chat session.

Every session access goes through `app.runner.call`, so the tree is only ever
touched on the event loop thread.
"""

import base64
import binascii
import logging

from dash import ALL, Input, Output, State, callback_context, no_update

logger = logging.getLogger("chatbranch.callbacks")


def _view(session):
    """Everything a render needs. Drains the notification queue."""
    return {
        "messages": session.snapshot(),
        "running": session.orchestrator.running_ids,
        "generating": session.generating,
        "notifications": session.drain_notifications(),
        "title": session.page_title(),
        "files": list(session.files),
        "pathname": session.navigator.pathname,
    }


def _page(session, pathname):
    """Sync the navigator with the browser and read the page state.

    Leaves pending notifications queued for the next refresh.
    """
    session.navigator.sync(pathname or "/")
    return {
        "messages": session.snapshot(),
        "running": session.orchestrator.running_ids,
        "selected": list(session.selected_models),
    }


def _as_list(value):
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _file_ref(filename, contents):
    """Describe an upload from its data URL without keeping the payload."""
    ref = {"name": filename}
    if contents and "," in contents:
        header, data = contents.split(",", 1)
        if header.startswith("data:"):
            ref["type"] = header[len("data:") :].split(";", 1)[0] or None
        try:
            ref["size"] = len(base64.b64decode(data))
        except binascii.Error:
            logger.warning("Could not decode upload %s", filename)
    return ref


def register_callbacks(app):
    session = app.session
    runner = app.runner
    layout = app.layout_builder

    def render(view):
        return (
            layout.build_messages(view["messages"], view["running"]),
            not view["generating"],
            layout.build_notifications(view["notifications"]),
            view["title"],
        )

    @app.callback(
        [
            Output("messages_container", "children"),
            Output("stream_interval", "disabled"),
            Output("notifications_container", "children"),
            Output("page_title", "data"),
            Output("input_textarea", "value"),
            Output("attached_files", "children"),
            Output("url_location", "pathname", allow_duplicate=True),
        ],
        [Input("submit_button", "n_clicks")],
        [State("input_textarea", "value"), State("model_selector", "value")],
        running=[(Output("status_indicator", "hidden"), False, True)],
        prevent_initial_call=True,
    )
    def send_message(n_clicks, user_input, model_ids):
        if not n_clicks:
            return (no_update,) * 7

        previous_path = runner.call(lambda: session.navigator.pathname)
        submission = runner.call(
            session.send, user_input or "", None, _as_list(model_ids)
        )
        view = runner.call(_view, session)
        input_value = "" if submission is not None else no_update
        pathname = view["pathname"]
        if pathname == previous_path:
            pathname = no_update
        return (
            *render(view),
            input_value,
            layout.build_attachments(view["files"]),
            pathname,
        )

    @app.callback(
        [
            Output("messages_container", "children", allow_duplicate=True),
            Output("stream_interval", "disabled", allow_duplicate=True),
            Output("notifications_container", "children", allow_duplicate=True),
            Output("page_title", "data", allow_duplicate=True),
        ],
        [Input("stream_interval", "n_intervals")],
        prevent_initial_call=True,
    )
    def refresh_messages(n_intervals):
        return render(runner.call(_view, session))

    @app.callback(
        Output("stream_interval", "disabled", allow_duplicate=True),
        [Input("stop_button", "n_clicks")],
        prevent_initial_call=True,
    )
    def stop_all(n_clicks):
        if not n_clicks:
            return no_update
        stopped = runner.call(session.stop_all)
        logger.info("Stop requested for %d stream(s)", stopped)
        return False

    @app.callback(
        Output("stream_interval", "disabled", allow_duplicate=True),
        [Input({"type": "stop_message", "id": ALL}, "n_clicks")],
        prevent_initial_call=True,
    )
    def stop_message(n_clicks):
        if not any(n_clicks or []):
            return no_update
        message_id = callback_context.triggered_id["id"]
        runner.call(session.stop, message_id)
        return False

    @app.callback(
        [
            Output("messages_container", "children", allow_duplicate=True),
            Output("input_textarea", "value", allow_duplicate=True),
            Output("attached_files", "children", allow_duplicate=True),
            Output("model_selector", "value", allow_duplicate=True),
            Output("url_location", "pathname", allow_duplicate=True),
            Output("page_title", "data", allow_duplicate=True),
        ],
        [Input("new_chat_button", "n_clicks")],
        prevent_initial_call=True,
    )
    def new_chat(n_clicks):
        if not n_clicks:
            return (no_update,) * 6
        runner.call(session.new_chat)
        selected, pathname, title = runner.call(
            lambda: (
                list(session.selected_models),
                session.navigator.pathname,
                session.page_title(),
            )
        )
        return ([], "", [], selected, pathname, title)

    @app.callback(
        [
            Output("model_selector", "options"),
            Output("model_selector", "value"),
            Output("stream_interval", "interval"),
            Output("messages_container", "children", allow_duplicate=True),
        ],
        [Input("url_location", "pathname")],
        prevent_initial_call="initial_duplicate",
    )
    def load_page(pathname):
        options = [
            {"label": model.name or model.id, "value": model.id}
            for model in app.catalog
            if not model.hidden
        ]
        page = runner.call(_page, session, pathname)
        return (
            options,
            page["selected"],
            app.settings.refresh_interval_ms,
            layout.build_messages(page["messages"], page["running"]),
        )

    @app.callback(
        Output("attached_files", "children", allow_duplicate=True),
        [Input("file_upload", "contents")],
        [State("file_upload", "filename")],
        prevent_initial_call=True,
    )
    def attach_files(contents, filenames):
        if not contents:
            return no_update
        for filename, data in zip(_as_list(filenames), _as_list(contents)):
            runner.call(session.attach, _file_ref(filename, data))
        return layout.build_attachments(runner.call(lambda: list(session.files)))

    @app.callback(
        Output("suggestions_container", "children"),
        [Input("input_textarea", "value"), Input("messages_container", "children")],
    )
    def update_suggestions(user_input, messages):
        if runner.call(lambda: bool(session.history.messages)):
            return []
        return layout.build_suggestions(app.suggestions.filter(user_input))

    @app.callback(
        [
            Output("messages_container", "children", allow_duplicate=True),
            Output("stream_interval", "disabled", allow_duplicate=True),
            Output("notifications_container", "children", allow_duplicate=True),
            Output("page_title", "data", allow_duplicate=True),
            Output("input_textarea", "value", allow_duplicate=True),
        ],
        [Input({"type": "suggestion", "content": ALL}, "n_clicks")],
        prevent_initial_call=True,
    )
    def select_suggestion(n_clicks):
        if not any(n_clicks or []):
            return (no_update,) * 5
        content = callback_context.triggered_id["content"]
        runner.call(session.select_suggestion, content)
        view = runner.call(_view, session)
        return (*render(view), runner.call(lambda: session.prompt))

    _register_clientside_callbacks(app)


def _register_clientside_callbacks(app):
    # Auto-scroll to bottom
    app.clientside_callback(
        """
        function(messages_content) {
            if (messages_content && messages_content.length > 0) {
                setTimeout(function() {
                    const messagesContainer = document.getElementById('messages_container');
                    if (messagesContainer) {
                        messagesContainer.scrollTop = messagesContainer.scrollHeight;
                    }
                }, 100);
            }
            return window.dash_clientside.no_update;
        }
        """,
        Output("messages_container", "data-scroll-trigger", allow_duplicate=True),
        [Input("messages_container", "children")],
        prevent_initial_call=True,
    )

    # Focus input after sending
    app.clientside_callback(
        """
        function(input_value) {
            if (input_value === "") {
                setTimeout(() => {
                    const textarea = document.getElementById('input_textarea');
                    if (textarea) {
                        textarea.focus();
                    }
                }, 100);
            }
            return {};
        }
        """,
        Output("input_textarea", "style", allow_duplicate=True),
        [Input("input_textarea", "value")],
        prevent_initial_call=True,
    )

    # Browser tab title
    app.clientside_callback(
        """
        function(title) {
            if (title) {
                document.title = title;
            }
            return window.dash_clientside.no_update;
        }
        """,
        Output("page_title", "clear_data", allow_duplicate=True),
        [Input("page_title", "data")],
        prevent_initial_call=True,
    )
