from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest
from lsprotocol.types import (
    WORKSPACE_DID_CHANGE_CONFIGURATION,
    ClientCapabilities,
    InitializeParams,
    MessageType,
    PublishDiagnosticsClientCapabilities,
    TextDocumentClientCapabilities,
    TextDocumentSyncKind,
    WorkspaceClientCapabilities,
)

from plainls.lsp.negotiation import SERVER_CAPABILITIES, negotiate, on_initialized
from plainls.lsp.session import ProtocolViolation, Session, SessionCapabilities


def initialize_params(
    configuration=None, workspace_folders=None, related_information=None
) -> InitializeParams:
    workspace = None
    if configuration is not None or workspace_folders is not None:
        workspace = WorkspaceClientCapabilities(
            configuration=configuration, workspace_folders=workspace_folders
        )
    text_document = None
    if related_information is not None:
        text_document = TextDocumentClientCapabilities(
            publish_diagnostics=PublishDiagnosticsClientCapabilities(
                related_information=related_information
            )
        )
    return InitializeParams(
        process_id=None,
        capabilities=ClientCapabilities(
            workspace=workspace, text_document=text_document
        ),
    )


class TestNegotiate:
    def test_all_capabilities_present(self):
        result = negotiate(initialize_params(True, True, True))

        assert result == SessionCapabilities(
            supports_dynamic_configuration=True,
            supports_workspace_folders=True,
            supports_diagnostic_related_information=True,
        )

    def test_missing_sections_mean_false(self):
        result = negotiate(initialize_params())

        assert result == SessionCapabilities()

    def test_flags_are_independent(self):
        result = negotiate(initialize_params(configuration=False, related_information=True))

        assert not result.supports_dynamic_configuration
        assert not result.supports_workspace_folders
        assert result.supports_diagnostic_related_information

    def test_text_document_without_publish_diagnostics(self):
        params = InitializeParams(
            process_id=None,
            capabilities=ClientCapabilities(
                text_document=TextDocumentClientCapabilities()
            ),
        )

        assert not negotiate(params).supports_diagnostic_related_information

    @pytest.mark.parametrize("params", [None, SimpleNamespace(capabilities=None), object()])
    def test_malformed_handshake(self, params):
        with pytest.raises(ProtocolViolation):
            negotiate(params)


def test_manifest():
    assert SERVER_CAPABILITIES.text_document_sync == TextDocumentSyncKind.Full
    assert SERVER_CAPABILITIES.completion_provider.resolve_provider is True


class TestSession:
    def test_initialize_sets_capabilities_and_settings_mode(self):
        session = Session()

        capabilities = session.initialize(initialize_params(configuration=True))

        assert session.capabilities is capabilities
        assert session.settings.per_scope
        assert session.accepts_documents

    def test_without_configuration_uses_global_settings(self):
        session = Session()

        session.initialize(initialize_params(configuration=False))

        assert not session.settings.per_scope

    def test_not_initialized_refuses_documents(self):
        assert not Session().accepts_documents

    def test_malformed_handshake_fails_session(self):
        session = Session()

        with pytest.raises(ProtocolViolation):
            session.initialize(None)

        assert session.failed
        assert not session.accepts_documents

    def test_second_initialize_is_a_violation(self):
        session = Session()
        session.initialize(initialize_params(True, True, True))

        with pytest.raises(ProtocolViolation):
            session.initialize(initialize_params())

        assert session.capabilities.supports_dynamic_configuration
        assert not session.accepts_documents


@pytest.fixture
def server():
    server = Mock()
    server.session = Session()
    server.client_register_capability_async = AsyncMock()
    server.window_log_message = Mock()
    return server


@pytest.mark.asyncio
async def test_on_initialized_registers_configuration_changes(server):
    server.session.initialize(initialize_params(configuration=True))

    await on_initialized(server)

    params = server.client_register_capability_async.call_args[0][0]
    assert [r.method for r in params.registrations] == [WORKSPACE_DID_CHANGE_CONFIGURATION]


@pytest.mark.asyncio
async def test_on_initialized_skips_registration_without_configuration(server):
    server.session.initialize(initialize_params(configuration=False))

    await on_initialized(server)

    assert not server.client_register_capability_async.called


@pytest.mark.asyncio
async def test_on_initialized_logs_failed_registration(server):
    server.session.initialize(initialize_params(configuration=True))
    server.client_register_capability_async.side_effect = RuntimeError("nope")

    await on_initialized(server)

    call_args = server.window_log_message.call_args[0][0]
    assert call_args.type == MessageType.Warning


@pytest.mark.asyncio
async def test_on_initialized_observes_workspace_folders(server):
    server.session.initialize(initialize_params(workspace_folders=True))

    await on_initialized(server)

    call_args = server.window_log_message.call_args[0][0]
    assert call_args.type == MessageType.Log
