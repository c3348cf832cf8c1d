import asyncio
from unittest.mock import Mock

import pytest
from lsprotocol.types import (
    ClientCapabilities,
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    InitializeParams,
    MessageType,
    PublishDiagnosticsClientCapabilities,
    TextDocumentClientCapabilities,
    TextDocumentContentChangeWholeDocument,
    TextDocumentIdentifier,
    TextDocumentItem,
    VersionedTextDocumentIdentifier,
    WorkspaceClientCapabilities,
)

from plainls.lsp.capabilities.diagnostics_capabilities import (
    PatternDiagnosticsCapability,
)
from plainls.lsp.session import Session
from plainls.lsp.text_sync_manager import TextSyncManager

URI = "file:///test.txt"
UGLY = "purple hair is ugly"


async def settle():
    for _ in range(10):
        await asyncio.sleep(0)


class FakeClient:
    """Answers configuration pulls when the test says so."""

    def __init__(self):
        self.requests: list[str] = []
        self.replies: dict[str, asyncio.Future] = {}

    async def fetch(self, uri: str):
        self.requests.append(uri)
        reply = asyncio.get_running_loop().create_future()
        self.replies[uri] = reply
        return await reply


def make_server(configuration=False, related_information=True, fetch=None):
    server = Mock()
    server.window_log_message = Mock()
    server.text_document_publish_diagnostics = Mock()
    server.session = Session(fetch_configuration=fetch)
    server.session.initialize(
        InitializeParams(
            process_id=None,
            capabilities=ClientCapabilities(
                workspace=WorkspaceClientCapabilities(configuration=configuration),
                text_document=TextDocumentClientCapabilities(
                    publish_diagnostics=PublishDiagnosticsClientCapabilities(
                        related_information=related_information
                    )
                ),
            ),
        )
    )
    server.text_sync_manager = TextSyncManager(server)
    server.diagnostics = PatternDiagnosticsCapability(server)
    server.diagnostics.register()
    return server


def published(server):
    return [c[0][0] for c in server.text_document_publish_diagnostics.call_args_list]


async def did_open(server, text, uri=URI, version=1):
    await server.text_sync_manager.did_open(
        DidOpenTextDocumentParams(
            text_document=TextDocumentItem(
                uri=uri, language_id="plaintext", version=version, text=text
            )
        )
    )


async def did_change(server, text, uri=URI, version=2):
    await server.text_sync_manager.did_change(
        DidChangeTextDocumentParams(
            text_document=VersionedTextDocumentIdentifier(uri=uri, version=version),
            content_changes=[TextDocumentContentChangeWholeDocument(text=text)],
        )
    )


async def did_close(server, uri=URI):
    await server.text_sync_manager.did_close(
        DidCloseTextDocumentParams(text_document=TextDocumentIdentifier(uri=uri))
    )


class TestGlobalSettings:
    """Client without workspace/configuration support."""

    @pytest.mark.asyncio
    async def test_open_publishes_once(self):
        server = make_server()

        await did_open(server, UGLY)

        [params] = published(server)
        assert params.uri == URI
        assert params.version == 1
        assert len(params.diagnostics) == 1
        assert len(params.diagnostics[0].related_information) == 2

    @pytest.mark.asyncio
    async def test_each_change_publishes_full_set(self):
        server = make_server()

        await did_open(server, UGLY)
        await did_change(server, "all good now", version=2)
        await did_change(server, UGLY + "\n" + UGLY, version=3)

        assert [len(p.diagnostics) for p in published(server)] == [1, 0, 2]
        assert [p.version for p in published(server)] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_cap_from_global_settings(self):
        server = make_server()
        server.session.settings.apply_configuration_change(
            {"plainLanguageServer": {"maxNumberOfProblems": 2}}
        )

        await did_open(server, "\n".join([UGLY] * 3))

        [params] = published(server)
        assert [d.range.start.line for d in params.diagnostics] == [0, 1]

    @pytest.mark.asyncio
    async def test_identical_input_gives_identical_output(self):
        server = make_server()

        await did_open(server, UGLY)
        await did_change(server, UGLY, version=1)

        first, second = published(server)
        assert first.diagnostics == second.diagnostics

    @pytest.mark.asyncio
    async def test_no_related_information_without_capability(self):
        server = make_server(related_information=False)

        await did_open(server, UGLY)

        [params] = published(server)
        assert params.diagnostics[0].related_information is None

    @pytest.mark.asyncio
    async def test_revalidate_all_publishes_every_open_document(self):
        server = make_server()
        await did_open(server, UGLY, uri="file:///a.txt")
        await did_open(server, "fine", uri="file:///b.txt")
        server.text_document_publish_diagnostics.reset_mock()

        await server.diagnostics.revalidate_all()

        assert sorted(p.uri for p in published(server)) == ["file:///a.txt", "file:///b.txt"]


class TestPulledSettings:
    """Client that answers workspace/configuration per document."""

    @pytest.mark.asyncio
    async def test_publish_waits_for_settings(self):
        client = FakeClient()
        server = make_server(configuration=True, fetch=client.fetch)

        task = asyncio.ensure_future(did_open(server, "\n".join([UGLY] * 3)))
        await settle()
        assert published(server) == []
        assert client.requests == [URI]

        client.replies[URI].set_result({"maxNumberOfProblems": 2})
        await task

        [params] = published(server)
        assert len(params.diagnostics) == 2

    @pytest.mark.asyncio
    async def test_fetch_failure_abandons_pass(self):
        client = FakeClient()
        server = make_server(configuration=True, fetch=client.fetch)

        task = asyncio.ensure_future(did_open(server, UGLY))
        await settle()
        client.replies[URI].set_exception(RuntimeError("client error"))
        await task

        assert published(server) == []
        call_args = server.window_log_message.call_args[0][0]
        assert call_args.type == MessageType.Warning

        # The next edit retries the pull
        task = asyncio.ensure_future(did_change(server, UGLY))
        await settle()
        client.replies[URI].set_result(None)
        await task

        assert len(published(server)) == 1

    @pytest.mark.asyncio
    async def test_close_discards_pending_pass(self):
        client = FakeClient()
        server = make_server(configuration=True, fetch=client.fetch)

        task = asyncio.ensure_future(did_open(server, UGLY))
        await settle()
        await did_close(server)
        await task

        assert published(server) == []
        assert not server.session.settings.is_cached(URI)

    @pytest.mark.asyncio
    async def test_close_before_pass_starts_leaves_no_settings_entry(self):
        client = FakeClient()
        server = make_server(configuration=True, fetch=client.fetch)

        task = asyncio.ensure_future(did_open(server, UGLY))
        await settle()
        client.replies[URI].set_result(None)
        await task

        server.session.settings.apply_configuration_change(None)
        revalidation = asyncio.ensure_future(server.diagnostics.revalidate_all())
        await asyncio.sleep(0)
        await did_close(server)
        await settle()
        await revalidation

        assert URI not in server.session.documents
        assert not server.session.settings.is_cached(URI)
        assert client.requests == [URI]
        assert len(published(server)) == 1

    @pytest.mark.asyncio
    async def test_reopen_does_not_reuse_settings_from_before_close(self):
        client = FakeClient()
        server = make_server(configuration=True, fetch=client.fetch)
        text = "\n".join([UGLY] * 3)

        task = asyncio.ensure_future(did_open(server, UGLY))
        await settle()
        client.replies[URI].set_result({"maxNumberOfProblems": 1})
        await task
        await did_close(server)

        task = asyncio.ensure_future(did_open(server, text))
        await settle()
        assert client.requests == [URI, URI]
        client.replies[URI].set_result({"maxNumberOfProblems": 3})
        await task

        assert len(published(server)[-1].diagnostics) == 3

    @pytest.mark.asyncio
    async def test_stale_fetch_cannot_overwrite_newer_publish(self):
        client = FakeClient()
        server = make_server(configuration=True, fetch=client.fetch)
        text = "\n".join([UGLY] * 3)

        first = asyncio.ensure_future(did_open(server, text))
        await settle()
        stale_reply = client.replies[URI]

        server.session.settings.apply_configuration_change(None)
        second = asyncio.ensure_future(server.diagnostics.revalidate_all())
        await settle()
        assert client.requests == [URI, URI]

        client.replies[URI].set_result({"maxNumberOfProblems": 1})
        await second
        stale_reply.set_result({"maxNumberOfProblems": 3})
        await first

        [params] = published(server)
        assert len(params.diagnostics) == 1

    @pytest.mark.asyncio
    async def test_concurrent_passes_share_one_pull(self):
        client = FakeClient()
        server = make_server(configuration=True, fetch=client.fetch)

        opened = asyncio.ensure_future(did_open(server, UGLY))
        await settle()
        changed = asyncio.ensure_future(did_change(server, "fine", version=2))
        await settle()
        client.replies[URI].set_result(None)
        await asyncio.gather(opened, changed)

        assert client.requests == [URI]
        assert [p.version for p in published(server)] == [1, 2]
