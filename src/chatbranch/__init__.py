"""
The main entrypoint for the chatbranch package.

This module contains the primary Chatbranch class, a Dash application that
streams one prompt to several models at once into a branching conversation
tree. Its collaborators (layout, LLM, catalog, settings, suggestions, URL
strategy) are injected, with defaults for each.
"""

from typing import Optional

from dash import Dash

from . import catalog, config, layout, llm, suggestions, url
from .runner import LoopThread
from .session import ChatSession


class Chatbranch(Dash):
    """
    The main class for the chatbranch multi-model chat UI.

    The app owns one `ChatSession` and a `LoopThread` whose event loop runs
    every stream; Dash callbacks marshal their session calls onto that loop.
    """

    def __init__(
        self,
        layout: Optional["layout.Layout"] = None,
        llm: Optional["llm.LLM"] = None,
        catalog: Optional["catalog.Catalog"] = None,
        settings: Optional["config.Settings"] = None,
        suggestions: Optional["suggestions.Suggestions"] = None,
        url: Optional["url.URL"] = None,
        **kwargs,
    ) -> None:
        """
        Initialize the Chatbranch application with configurable collaborators.

        Parameters
        ----------
        layout : layout.Layout, optional
            Layout builder for constructing the Dash component tree.
            Defaults to layout.Bootstrap(), or layout.Minimal() when
            dash-bootstrap-components is not installed.
        llm : llm.LLM, optional
            Streaming completion client. Defaults to llm.OpenAI(), or
            llm.Echo() when the openai package is not installed. Use
            llm.Router to serve models from several providers.
        catalog : catalog.Catalog, optional
            Models offered in the model picker. Defaults to the models in
            `settings.default_models`, or the LLM's default model.
        settings : config.Settings, optional
            Application settings. Defaults to values read from CHATBRANCH_*
            environment variables.
        suggestions : suggestions.Suggestions, optional
            Prompt suggestions shown on an empty chat. Defaults to none.
        url : url.URL, optional
            URL strategy used by the navigator. Defaults to url.PathBased().
        **kwargs
            Additional arguments passed to the Dash constructor.

        Raises
        ------
        ValueError
            If the layout is missing required component IDs needed for the chat
            functionality.

        Examples
        --------
        >>> app = Chatbranch(llm=llm.Echo())

        >>> app = Chatbranch(
        ...     llm=llm.Router({"gpt-4o": llm.OpenAI(), "claude": llm.Anthropic()}),
        ...     catalog=catalog.Catalog.from_ids(["gpt-4o", "claude"]),
        ... )
        """
        config_module = globals()["config"]
        suggestions_module = globals()["suggestions"]
        url_module = globals()["url"]

        self.settings = settings if settings is not None else config_module.Settings()

        if layout:
            self.layout_builder = layout
        else:
            try:
                from .layout import Bootstrap

                self.layout_builder = Bootstrap()
            except ImportError:
                import warnings

                warnings.warn(
                    "chatbranch is running with a minimal layout because 'dash-bootstrap-components' is not installed. "
                    'For the default UI, install with: pip install "chatbranch[default]"',
                    UserWarning,
                )
                from .layout import Minimal

                self.layout_builder = Minimal()

        if llm:
            self.llm = llm
        else:
            try:
                from .llm import OpenAI

                self.llm = OpenAI()
            except ImportError:
                import warnings

                warnings.warn(
                    "chatbranch is running with a simple Echo LLM because the 'openai' package is not installed. "
                    'For the default OpenAI integration, install with: pip install "chatbranch[default]"',
                    UserWarning,
                )
                from .llm import Echo

                self.llm = Echo(delay=self.settings.echo_delay)

        if "external_stylesheets" not in kwargs:
            kwargs["external_stylesheets"] = []
        kwargs["external_stylesheets"].extend(
            self.layout_builder.get_external_stylesheets()
        )

        if "external_scripts" not in kwargs:
            kwargs["external_scripts"] = []
        kwargs["external_scripts"].extend(self.layout_builder.get_external_scripts())

        kwargs.setdefault("title", self.settings.app_name)

        super().__init__(**kwargs)

        self.url = url if url is not None else url_module.PathBased()
        self.navigator = url_module.Navigator(self.url)
        self.suggestions = (
            suggestions
            if suggestions is not None
            else suggestions_module.Suggestions(
                threshold=self.settings.suggestion_threshold,
                max_query_length=self.settings.suggestion_max_query_length,
            )
        )
        self.runner = LoopThread()
        self.session = ChatSession(
            self.llm,
            catalog=catalog,
            settings=self.settings,
            navigator=self.navigator,
        )
        self.catalog = self.session.catalog

        self.layout = self.layout_builder.build_layout()
        self._register_callbacks()

    def _register_callbacks(self) -> None:
        """Registers all the callbacks that drive the session."""
        from .callbacks import register_callbacks

        register_callbacks(self)
