from lsprotocol.types import (
    COMPLETION_ITEM_RESOLVE,
    INITIALIZE,
    INITIALIZED,
    TEXT_DOCUMENT_COMPLETION,
    WORKSPACE_DID_CHANGE_CONFIGURATION,
    WORKSPACE_DID_CHANGE_WATCHED_FILES,
    WORKSPACE_DID_CHANGE_WORKSPACE_FOLDERS,
    CompletionItem,
    CompletionList,
    CompletionParams,
    DidChangeConfigurationParams,
    DidChangeWatchedFilesParams,
    DidChangeWorkspaceFoldersParams,
    InitializedParams,
    InitializeParams,
    LogMessageParams,
    MessageType,
)

from plainls import __version__
from plainls.lsp.capabilities.capabilities import CapabilityManager
from plainls.lsp.negotiation import SERVER_CAPABILITIES, on_initialized
from plainls.lsp.plain_language_server import PlainLanguageServer
from plainls.lsp.text_sync_manager import TextSyncManager
from plainls.workspace.settings_cache import InvalidSettings


def create_server() -> PlainLanguageServer:
    """
    Creates and returns a configured Language Server instance.

    The LanguageServer class from pygls handles:
    - JSON-RPC communication with clients (editors)
    - Request/response lifecycle
    - Answering unknown methods with MethodNotFound
    """
    server = PlainLanguageServer("plainls", __version__)

    # TextSyncManager goes first so capabilities can register hooks
    server.text_sync_manager = TextSyncManager(server)
    server.text_sync_manager.register_handlers()

    server.capability_manager = CapabilityManager(server)
    server.capability_manager.register_all()

    @server.feature(INITIALIZE)
    def initialize(ls: PlainLanguageServer, params: InitializeParams):
        """
        Record the client's optional features.

        A malformed handshake raises ProtocolViolation; pygls answers the
        request with an error and the server then closes the connection.
        """
        capabilities = ls.session.initialize(params)
        ls.window_log_message(
            LogMessageParams(
                MessageType.Info,
                f"Client capabilities: "
                f"configuration={capabilities.supports_dynamic_configuration}, "
                f"workspace_folders={capabilities.supports_workspace_folders}, "
                f"related_information="
                f"{capabilities.supports_diagnostic_related_information}",
            )
        )

    @server.feature(INITIALIZED)
    async def initialized(ls: PlainLanguageServer, params: InitializedParams):
        await on_initialized(ls)

    @server.feature(WORKSPACE_DID_CHANGE_CONFIGURATION)
    async def did_change_configuration(
        ls: PlainLanguageServer, params: DidChangeConfigurationParams
    ):
        try:
            ls.session.settings.apply_configuration_change(params.settings)
        except InvalidSettings as e:
            ls.window_log_message(
                LogMessageParams(MessageType.Error, f"Invalid settings: {e}")
            )
            return

        if ls.capability_manager:
            await ls.capability_manager.handle_configuration_change()

    @server.feature(WORKSPACE_DID_CHANGE_WORKSPACE_FOLDERS)
    def did_change_workspace_folders(
        ls: PlainLanguageServer, params: DidChangeWorkspaceFoldersParams
    ):
        capabilities = ls.session.capabilities
        if capabilities and capabilities.supports_workspace_folders:
            ls.window_log_message(
                LogMessageParams(
                    MessageType.Log, "Workspace folder change event received."
                )
            )

    @server.feature(WORKSPACE_DID_CHANGE_WATCHED_FILES)
    def did_change_watched_files(
        ls: PlainLanguageServer, params: DidChangeWatchedFilesParams
    ):
        ls.window_log_message(
            LogMessageParams(MessageType.Log, "We received a file change event")
        )

    @server.feature(TEXT_DOCUMENT_COMPLETION, SERVER_CAPABILITIES.completion_provider)
    async def completion(ls: PlainLanguageServer, params: CompletionParams):
        if ls.capability_manager:
            return await ls.capability_manager.handle_completion(params)
        return CompletionList(is_incomplete=False, items=[])

    @server.feature(COMPLETION_ITEM_RESOLVE)
    async def completion_resolve(ls: PlainLanguageServer, item: CompletionItem):
        if ls.capability_manager:
            return await ls.capability_manager.resolve_completion(item)
        return item

    return server
