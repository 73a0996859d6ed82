"""Layout builders: the Dash component tree and message rendering."""

from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional, Set

from dash import dcc, html
from dash.development.base_component import Component as DashComponent

from .models import USER_ROLE, Message
from .session import Notification
from .suggestions import SuggestionPrompt

REQUIRED_IDS = {
    "url_location",
    "messages_container",
    "input_textarea",
    "submit_button",
    "stop_button",
    "new_chat_button",
    "model_selector",
    "file_upload",
    "attached_files",
    "suggestions_container",
    "notifications_container",
    "stream_interval",
    "status_indicator",
    "page_title",
}


def collect_ids(component: Any) -> Set[str]:
    """Every string component id in a Dash component tree."""
    ids: Set[str] = set()
    stack = [component]
    while stack:
        node = stack.pop()
        if isinstance(node, (list, tuple)):
            stack.extend(node)
            continue
        if not isinstance(node, DashComponent):
            continue
        component_id = getattr(node, "id", None)
        if isinstance(component_id, str):
            ids.add(component_id)
        children = getattr(node, "children", None)
        if children is not None:
            stack.append(children)
    return ids


class Layout(ABC):
    """Interface for building the Dash component layout."""

    def __init__(self):
        self._validate_layout()

    @abstractmethod
    def build_layout(self) -> DashComponent:
        """Constructs and returns the entire Dash component tree for the UI."""
        pass

    @abstractmethod
    def build_messages(
        self, messages: List[Message], running_ids: Iterable[str] = ()
    ) -> List[DashComponent]:
        """Renders the active path. `running_ids` are still streaming."""
        pass

    @abstractmethod
    def get_external_stylesheets(self) -> List[Any]:
        pass

    def get_external_scripts(self) -> List[Any]:
        return []

    def build_suggestions(self, prompts: List[SuggestionPrompt]) -> List[DashComponent]:
        return [
            html.Button(
                prompt.title[0] if prompt.title and prompt.title[0] else prompt.content,
                id={"type": "suggestion", "content": prompt.content},
                n_clicks=0,
                title=prompt.title[1] if prompt.title else "Prompt",
            )
            for prompt in prompts
        ]

    def build_notifications(
        self, notifications: List[Notification]
    ) -> List[DashComponent]:
        return [
            html.Div(n.message, className=f"notification notification-{n.level}")
            for n in notifications
        ]

    def build_attachments(self, files: List[Any]) -> List[DashComponent]:
        return [html.Span(f.name, className="attachment") for f in files]

    def _validate_layout(self) -> None:
        missing = REQUIRED_IDS - collect_ids(self.build_layout())
        if missing:
            missing_ids = ", ".join(sorted(missing))
            raise ValueError(f"Layout is missing required component ids: {missing_ids}")


class Minimal(Layout):
    """A dependency-free layout using only core Dash components."""

    def build_layout(self) -> DashComponent:
        return html.Div(
            [
                dcc.Location(id="url_location", refresh=False),
                dcc.Store(id="page_title"),
                dcc.Interval(id="stream_interval", interval=250, disabled=True),
                html.Div(
                    [
                        html.Button("New Chat", id="new_chat_button", n_clicks=0),
                        dcc.Dropdown(
                            id="model_selector", multi=True, options=[], value=[]
                        ),
                    ]
                ),
                html.Div(id="notifications_container"),
                html.Div(id="messages_container", style={"overflowY": "auto"}),
                html.Div(id="suggestions_container"),
                html.Div(id="attached_files"),
                html.Div(
                    [
                        dcc.Textarea(id="input_textarea", style={"width": "100%"}),
                        dcc.Upload(
                            html.Button("Attach"), id="file_upload", multiple=True
                        ),
                        html.Button("Send", id="submit_button", n_clicks=0),
                        html.Button("Stop", id="stop_button", n_clicks=0),
                        html.Div("Generating...", id="status_indicator", hidden=True),
                    ]
                ),
            ]
        )

    def build_messages(self, messages, running_ids=()):
        running = set(running_ids)
        rendered = []
        for message in messages:
            children = []
            if message.role != USER_ROLE and message.model:
                children.append(html.Strong(message.model_name or message.model))
            children.append(dcc.Markdown(message.content))
            if message.error is not None:
                children.append(
                    html.Div(message.error.content, className="message-error")
                )
            if message.id in running:
                children.append(
                    html.Button(
                        "Stop",
                        id={"type": "stop_message", "id": message.id},
                        n_clicks=0,
                    )
                )
            rendered.append(html.Div(children, id=f"message-{message.id}"))
        return rendered

    def get_external_stylesheets(self):
        return []


class Bootstrap(Layout):
    """The default layout, built with dash-bootstrap-components."""

    def __init__(self, theme: Optional[str] = None):
        import dash_bootstrap_components as dbc

        self.dbc = dbc
        self.theme = theme or dbc.themes.BOOTSTRAP
        super().__init__()

    def get_external_stylesheets(self):
        return [self.theme, self.dbc.icons.BOOTSTRAP]

    def build_layout(self) -> DashComponent:
        """Constructs the main layout Div."""
        return html.Div(
            className="d-flex flex-column vh-100",
            children=[
                dcc.Location(id="url_location", refresh=False),
                dcc.Store(id="page_title"),
                dcc.Interval(id="stream_interval", interval=250, disabled=True),
                self.build_header(),
                html.Div(
                    id="notifications_container",
                    className="position-fixed top-0 end-0 p-3",
                ),
                self.build_chat_area(),
                self.build_input_area(),
            ],
        )

    def build_header(self) -> DashComponent:
        """Builds the header: new chat button and model picker."""
        dbc = self.dbc
        return html.Header(
            className="p-2 bg-light border-bottom",
            children=[
                dbc.Container(
                    fluid=True,
                    children=[
                        dbc.Row(
                            align="center",
                            children=[
                                dbc.Col(
                                    dbc.Button(
                                        html.I(className="bi bi-pencil-square"),
                                        id="new_chat_button",
                                        n_clicks=0,
                                        title="New Chat",
                                    ),
                                    width="auto",
                                ),
                                dbc.Col(
                                    dcc.Dropdown(
                                        id="model_selector",
                                        multi=True,
                                        options=[],
                                        value=[],
                                        placeholder="Select a model",
                                    )
                                ),
                            ],
                        )
                    ],
                )
            ],
        )

    def build_chat_area(self) -> DashComponent:
        """Builds the main chat display area."""
        return html.Main(
            className="flex-grow-1 p-3 d-flex flex-column",
            style={"overflowY": "auto"},
            children=[
                html.Div(id="messages_container", className="flex-grow-1"),
                html.Div(
                    id="suggestions_container", className="d-flex flex-column gap-1"
                ),
            ],
        )

    def build_input_area(self) -> DashComponent:
        """Builds the user input area."""
        dbc = self.dbc
        return html.Footer(
            className="p-3 bg-light border-top",
            children=[
                html.Div(id="attached_files", className="mb-2"),
                dbc.InputGroup(
                    [
                        dcc.Upload(
                            dbc.Button(
                                html.I(className="bi bi-paperclip"), color="secondary"
                            ),
                            id="file_upload",
                            multiple=True,
                        ),
                        dbc.Textarea(id="input_textarea", placeholder="Send a Message"),
                        dbc.Button(
                            html.I(className="bi bi-send"),
                            id="submit_button",
                            color="primary",
                            n_clicks=0,
                        ),
                        dbc.Button(
                            html.I(className="bi bi-stop-fill"),
                            id="stop_button",
                            color="danger",
                            n_clicks=0,
                        ),
                    ]
                ),
                dbc.Spinner(html.Div(id="status_indicator", hidden=True), size="sm"),
            ],
        )

    def build_messages(self, messages, running_ids=()):
        dbc = self.dbc
        running = set(running_ids)
        rendered = []
        for message in messages:
            is_user = message.role == USER_ROLE
            body = []
            if not is_user and message.model:
                label = message.model_name or message.model
                body.append(html.Small(label, className="text-muted d-block"))
            if message.files:
                badges = [
                    dbc.Badge(f.name, color="secondary", className="me-1")
                    for f in message.files
                ]
                body.append(html.Div(badges))
            body.append(dcc.Markdown(message.content))
            if message.error is not None:
                body.append(
                    dbc.Alert(
                        message.error.content, color="danger", className="mb-0 py-1"
                    )
                )
            if message.id in running:
                body.append(
                    dbc.Button(
                        [dbc.Spinner(size="sm"), " Stop"],
                        id={"type": "stop_message", "id": message.id},
                        size="sm",
                        color="link",
                        n_clicks=0,
                    )
                )
            rendered.append(
                html.Div(
                    body,
                    id=f"message-{message.id}",
                    className="rounded-4 px-3 py-2 mb-3",
                    style={
                        "maxWidth": "80%",
                        "width": "fit-content",
                        "marginLeft": "auto" if is_user else None,
                        "backgroundColor": "#dcf8c6" if is_user else "#f1f3f5",
                    },
                )
            )
        return rendered

    def build_suggestions(self, prompts):
        dbc = self.dbc
        buttons = []
        for prompt in prompts:
            titled = bool(prompt.title and prompt.title[0])
            heading = prompt.title[0] if titled else prompt.content
            subheading = prompt.title[1] if titled else "Prompt"
            buttons.append(
                dbc.Button(
                    [
                        html.Div(heading, className="fw-medium"),
                        html.Small(subheading, className="text-muted"),
                    ],
                    id={"type": "suggestion", "content": prompt.content},
                    color="light",
                    className="text-start",
                    n_clicks=0,
                )
            )
        return buttons

    def build_notifications(self, notifications):
        dbc = self.dbc
        return [
            dbc.Toast(
                n.message,
                header=n.level.capitalize(),
                icon="danger" if n.level == "error" else n.level,
                duration=4000,
                dismissable=True,
            )
            for n in notifications
        ]
