import asyncio
import unittest

from chatinstance_cli.errors import StreamTransportError
from chatinstance_cli.streaming.frame_decoder import FrameDecoder, StreamEventRecord, is_done_sentinel


def _event(content: str) -> str:
    return 'data: {"choices":[{"delta":{"content":"%s"}}]}\n\n' % content


STREAM = _event("Hel") + ": keep-alive\n" + _event("lo") + _event(" w\\u00f6rld") + "data: [DONE]\n"


def _decode_all(chunks: list) -> list[StreamEventRecord]:
    decoder = FrameDecoder()
    records: list[StreamEventRecord] = []
    for chunk in chunks:
        records.extend(decoder.feed(chunk))
    records.extend(decoder.finish())
    return records


async def _agen(items):
    for item in items:
        if isinstance(item, Exception):
            raise item
        yield item


async def _collect(decoder: FrameDecoder, chunks) -> list[StreamEventRecord]:
    return [r async for r in decoder.decode(chunks)]


class FrameDecoderFeedTests(unittest.TestCase):
    def test_unsplit_stream_yields_one_record_per_data_line(self) -> None:
        records = _decode_all([STREAM])
        self.assertEqual(3, len(records))
        self.assertEqual("Hel", records[0].data["choices"][0]["delta"]["content"])
        self.assertEqual("lo", records[1].data["choices"][0]["delta"]["content"])
        self.assertEqual(" wörld", records[2].data["choices"][0]["delta"]["content"])

    def test_every_two_way_split_matches_unsplit(self) -> None:
        expected = _decode_all([STREAM])
        for i in range(len(STREAM) + 1):
            with self.subTest(split=i):
                self.assertEqual(expected, _decode_all([STREAM[:i], STREAM[i:]]))

    def test_single_character_chunks_match_unsplit(self) -> None:
        expected = _decode_all([STREAM])
        self.assertEqual(expected, _decode_all(list(STREAM)))

    def test_every_byte_split_handles_multibyte_characters(self) -> None:
        raw = STREAM.replace("\\u00f6", "ö").encode("utf-8")
        expected = _decode_all([raw])
        self.assertEqual(" wörld", expected[2].data["choices"][0]["delta"]["content"])
        for i in range(len(raw) + 1):
            with self.subTest(split=i):
                self.assertEqual(expected, _decode_all([raw[:i], raw[i:]]))

    def test_non_data_lines_are_ignored(self) -> None:
        records = _decode_all([": comment\nid: 7\nretry: 100\ndata:{}\n" + _event("x")])
        self.assertEqual(1, len(records))
        self.assertEqual("x", records[0].data["choices"][0]["delta"]["content"])

    def test_event_type_applies_until_blank_line(self) -> None:
        records = _decode_all(["event: completion\n", _event("a"), _event("b")])
        self.assertEqual(["completion", "message"], [r.event_type for r in records])

    def test_crlf_line_endings(self) -> None:
        records = _decode_all([_event("a").replace("\n", "\r\n")])
        self.assertEqual(1, len(records))
        self.assertEqual('{"choices":[{"delta":{"content":"a"}}]}', records[0].raw_payload)

    def test_malformed_payload_is_skipped(self) -> None:
        decoder = FrameDecoder()
        records = decoder.feed("data: {not json\n" + "data: [1, 2]\n" + _event("ok"))
        self.assertEqual(1, len(records))
        self.assertEqual(2, decoder.skipped_records)

    def test_sentinel_stops_decoding_for_rest_of_stream(self) -> None:
        decoder = FrameDecoder()
        records = decoder.feed(_event("a") + "data: [DONE]\n" + _event("after"))
        self.assertEqual(1, len(records))
        self.assertTrue(decoder.done)
        self.assertEqual([], decoder.feed(_event("later")))
        self.assertEqual([], decoder.finish())

    def test_sentinel_is_case_and_whitespace_insensitive(self) -> None:
        self.assertTrue(is_done_sentinel("  [done] "))
        decoder = FrameDecoder()
        decoder.feed("data:   [Done]   \n")
        self.assertTrue(decoder.done)

    def test_trailing_line_without_terminator_is_flushed_at_end(self) -> None:
        decoder = FrameDecoder()
        self.assertEqual([], decoder.feed(_event("a").rstrip("\n")))
        self.assertTrue(decoder.has_pending)
        records = decoder.finish()
        self.assertEqual(1, len(records))
        self.assertFalse(decoder.has_pending)

    def test_data_prefix_is_case_sensitive(self) -> None:
        self.assertEqual([], _decode_all(['DATA: {"choices":[]}\n']))


class FrameDecoderAsyncTests(unittest.TestCase):
    def test_decode_scenario_split_inside_payload(self) -> None:
        chunks = [
            'data: {"choices":[{"delta":{"content":"Hel',
            'lo"}}]}\n\ndata: [DONE]\n',
        ]
        records = asyncio.run(_collect(FrameDecoder(), _agen(chunks)))
        self.assertEqual(1, len(records))
        self.assertEqual("Hello", records[0].data["choices"][0]["delta"]["content"])

    def test_decode_ignores_chunks_after_sentinel(self) -> None:
        consumed: list[str] = []

        async def chunks():
            for chunk in ["data: [DONE]\n", _event("late")]:
                consumed.append(chunk)
                yield chunk

        records = asyncio.run(_collect(FrameDecoder(), chunks()))
        self.assertEqual([], records)
        self.assertEqual(1, len(consumed))

    def test_decode_wraps_source_errors_and_discards_partial_line(self) -> None:
        decoder = FrameDecoder()
        chunks = _agen([_event("a"), 'data: {"choices":[{"del', ConnectionResetError("reset")])
        seen: list[StreamEventRecord] = []

        async def run() -> None:
            async for record in decoder.decode(chunks):
                seen.append(record)

        with self.assertRaises(StreamTransportError):
            asyncio.run(run())
        self.assertEqual(1, len(seen))
        self.assertFalse(decoder.has_pending)

    def test_decode_passes_transport_errors_through(self) -> None:
        chunks = _agen([StreamTransportError("boom")])
        with self.assertRaises(StreamTransportError) as ctx:
            asyncio.run(_collect(FrameDecoder(), chunks))
        self.assertEqual("boom", str(ctx.exception))

    def test_decode_flushes_unterminated_tail(self) -> None:
        records = asyncio.run(_collect(FrameDecoder(), _agen([_event("end").rstrip("\n")])))
        self.assertEqual(1, len(records))


if __name__ == "__main__":
    unittest.main()
