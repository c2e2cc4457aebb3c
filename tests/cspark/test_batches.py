"""Tests for the asynchronous batch pipeline resource."""

import json
from unittest.mock import MagicMock

import pytest

from cspark.errors import SparkError, ValidationError
from cspark.http import RequestExecutor
from cspark.resources import (
    Batches,
    DuplicateChunkPolicy,
    Pipeline,
    PipelineChunk,
    PipelineOptions,
    PipelineState,
)
from cspark.resources.batches import parse_chunks, pipeline_chunks

BATCH_URL = "https://excel.test.us.coherent.global/my-tenant/api/v4/batch"


def _sent_body(session, index=-1):
    return json.loads(session.request.call_args_list[index].kwargs["data"])


def _submitted(make_response, records=0):
    return make_response(200, json_body={"record_submitted": records})


class TestPipelineChunks:
    """Tests for building and parsing pipeline chunks."""

    def test_header_row_repeated_in_every_chunk(self):
        dataset = [["a", "b"], [1, 2], [3, 4], [5, 6]]

        chunks = pipeline_chunks(dataset, chunk_size=2)

        assert [c.size for c in chunks] == [2, 1]
        assert chunks[0].data.inputs == [["a", "b"], [1, 2], [3, 4]]
        assert chunks[1].data.inputs == [["a", "b"], [5, 6]]
        assert chunks[0].id != chunks[1].id
        assert dataset[0] == ["a", "b"]

    def test_explicit_headers(self):
        chunks = pipeline_chunks([[1, 2]], headers=["a", "b"], parameters={"p": 1})

        assert chunks[0].data.inputs == [["a", "b"], [1, 2]]
        assert chunks[0].data.parameters == {"p": 1}

    def test_missing_headers(self):
        with pytest.raises(ValidationError, match="missing headers"):
            pipeline_chunks([])

    def test_parse_chunks(self):
        raw = json.dumps({"chunks": [{"id": "c1", "data": {"inputs": [["a"], [1], [2]]}}]})

        chunks = parse_chunks(raw)

        assert chunks[0].id == "c1"
        assert chunks[0].size == 3

    def test_parse_single_chunk(self):
        chunks = parse_chunks(json.dumps({"data": {"inputs": [[1]]}, "size": 1}))

        assert len(chunks) == 1
        assert chunks[0].size == 1

    def test_parse_invalid_json(self):
        with pytest.raises(SparkError, match="failed to parse"):
            parse_chunks("not json")


class TestBatches:
    """Tests for pipeline creation and discovery."""

    @pytest.mark.asyncio
    async def test_create(self, config, make_session, make_response):
        session = make_session(make_response(200, json_body={"id": "b-1", "object": "batch"}))
        batches = Batches(RequestExecutor(config, session=session))

        response = await batches.create(
            "f/s[1.0.0]",
            options=PipelineOptions(min_runners=10, chunks_per_vm=2, accuracy=0.95),
            selected_outputs=["out1", "out2"],
            input_key="row_id",
        )

        assert response.data["id"] == "b-1"
        method, url = session.request.call_args.args
        assert (method, url) == ("POST", BATCH_URL)
        assert _sent_body(session) == {
            "service": "f/s[1.0.0]",
            "output": "out1,out2",
            "call_purpose": "Async Batch Execution",
            "source_system": "Spark Python SDK",
            "unique_record_key": "row_id",
            "initial_workers": 10,
            "chunks_per_request": 2,
            "acceptable_error_percentage": 5,
        }

    @pytest.mark.asyncio
    async def test_create_requires_service(self, config, make_session):
        with pytest.raises(ValidationError):
            await Batches(RequestExecutor(config, session=make_session())).create("")

    @pytest.mark.asyncio
    async def test_describe(self, config, make_session, make_response):
        session = make_session(make_response(200, json_body={"in_progress_batches": []}))

        await Batches(RequestExecutor(config, session=session)).describe()

        assert session.request.call_args.args == ("GET", f"{BATCH_URL}/status")

    def test_of(self, config, make_session):
        pipeline = Batches(RequestExecutor(config, session=make_session())).of(" b-1 ")

        assert isinstance(pipeline, Pipeline)
        assert pipeline.id == "b-1"
        assert pipeline.state is PipelineState.OPEN

    def test_of_requires_id(self, config, make_session):
        with pytest.raises(ValidationError, match="pipeline id is required"):
            Batches(RequestExecutor(config, session=make_session())).of("  ")


class TestPipeline:
    """Tests for pushing, pulling and disposing a pipeline."""

    @staticmethod
    def _pipeline(config, session):
        return Pipeline("b-1", RequestExecutor(config, session=session))

    @pytest.mark.asyncio
    async def test_push_inputs(self, config, make_session, make_response):
        session = make_session(_submitted(make_response, 3))
        pipeline = self._pipeline(config, session)

        await pipeline.push(inputs=[["a"], [1], [2], [3]], chunk_size=2)

        method, url = session.request.call_args.args
        assert (method, url) == ("POST", f"{BATCH_URL}/b-1/chunks")
        chunks = _sent_body(session)["chunks"]
        assert [c["size"] for c in chunks] == [2, 1]
        assert pipeline.stats == {"chunks": 2, "records": 3}

    @pytest.mark.asyncio
    async def test_push_single_chunk_data(self, config, make_session, make_response):
        session = make_session(_submitted(make_response, 2))
        pipeline = self._pipeline(config, session)

        await pipeline.push(data={"inputs": [{"a": 1}, {"a": 2}], "parameters": {"p": 1}})

        chunk = _sent_body(session)["chunks"][0]
        assert chunk["data"]["parameters"] == {"p": 1}
        assert chunk["size"] == 2

    @pytest.mark.asyncio
    async def test_push_without_records(self, config, make_session):
        session = make_session()

        with pytest.raises(ValidationError, match="wrong data params"):
            await self._pipeline(config, session).push(data={"inputs": []})

        session.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_duplicate_ids_replaced(self, config, make_session, make_response):
        session = make_session(_submitted(make_response), _submitted(make_response))
        pipeline = self._pipeline(config, session)
        chunk = {"id": "c1", "data": {"inputs": [[1]]}}

        await pipeline.push(chunks=[chunk])
        await pipeline.push(chunks=[dict(chunk)])

        replaced = _sent_body(session)["chunks"][0]["id"]
        assert replaced != "c1"
        assert pipeline.stats == {"chunks": 2, "records": 2}

    @pytest.mark.asyncio
    async def test_duplicate_ids_ignored(self, config, make_session, make_response):
        session = make_session(_submitted(make_response), _submitted(make_response))
        pipeline = self._pipeline(config, session)
        chunk = PipelineChunk(id="c1", data={"inputs": [[1]]})

        await pipeline.push(chunks=[chunk])
        await pipeline.push(chunks=[chunk.model_copy()], if_chunk_id_duplicated="ignore")

        assert _sent_body(session)["chunks"][0]["id"] == "c1"
        assert pipeline.stats == {"chunks": 1, "records": 1}

    @pytest.mark.asyncio
    async def test_duplicate_ids_rejected(self, config, make_session, make_response):
        session = make_session(_submitted(make_response))
        pipeline = self._pipeline(config, session)

        await pipeline.push(chunks=[{"id": "c1", "data": {"inputs": [[1]]}}])
        with pytest.raises(SparkError, match="chunk id <c1> is duplicated"):
            await pipeline.push(
                chunks=[{"id": "c2", "data": {"inputs": [[2]]}}, {"id": "c1"}],
                if_chunk_id_duplicated=DuplicateChunkPolicy.THROW,
            )

        assert session.request.call_count == 1
        assert pipeline.stats == {"chunks": 1, "records": 1}

    @pytest.mark.asyncio
    async def test_pull(self, config, make_session, make_response):
        session = make_session(
            make_response(200, json_body={"data": [], "status": {"records_available": 0}})
        )

        await self._pipeline(config, session).pull(max_chunks=10)

        assert session.request.call_args.args == (
            "GET",
            f"{BATCH_URL}/b-1/chunkresults?max_chunks=10",
        )

    @pytest.mark.asyncio
    async def test_close_then_pull_but_not_push(self, config, make_session, make_response):
        session = make_session(
            make_response(200, json_body={"id": "b-1"}),
            make_response(200, json_body={"data": [], "status": {}}),
        )
        pipeline = self._pipeline(config, session)

        await pipeline.close()

        assert _sent_body(session, 0) == {"batch_status": "closed"}
        assert session.request.call_args_list[0].args == ("PATCH", f"{BATCH_URL}/b-1")
        assert pipeline.state is PipelineState.CLOSED
        assert pipeline.is_disposed
        await pipeline.pull()
        with pytest.raises(SparkError, match="already closed"):
            await pipeline.push(inputs=[["a"], [1]])
        with pytest.raises(SparkError, match="already closed"):
            await pipeline.cancel()

    @pytest.mark.asyncio
    async def test_cancel_blocks_everything(self, config, make_session, make_response):
        session = make_session(make_response(200, json_body={"id": "b-1"}))
        log = MagicMock()
        pipeline = self._pipeline(config.copy_with(logger=log), session)

        await pipeline.cancel()

        assert _sent_body(session) == {"batch_status": "cancelled"}
        assert pipeline.state is PipelineState.CANCELLED
        with pytest.raises(SparkError, match="already cancelled"):
            await pipeline.pull()
        with pytest.raises(SparkError, match="already cancelled"):
            await pipeline.close()
        assert session.request.call_count == 1
        assert log.error.call_count == 2

    @pytest.mark.asyncio
    async def test_state_unchanged_when_close_fails(self, config, make_session, make_response):
        session = make_session(make_response(404))
        pipeline = self._pipeline(config, session)

        with pytest.raises(SparkError):
            await pipeline.close()

        assert pipeline.state is PipelineState.OPEN

    @pytest.mark.asyncio
    async def test_info_and_status(self, config, make_session, make_response):
        session = make_session(
            make_response(200, json_body={"id": "b-1"}),
            make_response(200, json_body={"batch_status": "in_progress"}),
        )
        pipeline = self._pipeline(config, session)

        await pipeline.get_info()
        status = await pipeline.get_status()

        assert status.data["batch_status"] == "in_progress"
        urls = [call.args[1] for call in session.request.call_args_list]
        assert urls == [f"{BATCH_URL}/b-1", f"{BATCH_URL}/b-1/status"]
