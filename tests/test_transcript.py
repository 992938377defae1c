import unittest

from chatinstance_cli.message import Message, Role
from chatinstance_cli.transcript import Transcript, estimate_tokens


class TranscriptTests(unittest.TestCase):
    def test_seeded_with_system_prompt_at_position_zero(self) -> None:
        transcript = Transcript("You are terse.")
        self.assertEqual([Message.system("You are terse.")], transcript.snapshot())

    def test_append_preserves_order(self) -> None:
        transcript = Transcript()
        transcript.append(Message.user("a"))
        transcript.append(Message.assistant("b"))
        transcript.append(Message.user("c"))
        self.assertEqual(["a", "b", "c"], [m.content for m in transcript.snapshot()])

    def test_second_system_message_is_rejected(self) -> None:
        transcript = Transcript("sys")
        with self.assertRaises(ValueError):
            transcript.append(Message.system("other"))
        self.assertEqual(1, len(transcript))

    def test_snapshot_is_a_copy(self) -> None:
        transcript = Transcript()
        transcript.append(Message.user("a"))
        snapshot = transcript.snapshot()
        transcript.append(Message.assistant("b"))
        self.assertEqual(1, len(snapshot))
        snapshot.append(Message.user("x"))
        self.assertEqual(2, len(transcript))

    def test_clear_keeps_only_system_prompt(self) -> None:
        transcript = Transcript("You are terse.")
        transcript.append(Message.user("q1"))
        transcript.append(Message.assistant("a1"))
        transcript.clear(preserve_system_prompt=True)
        self.assertEqual([Message(Role.SYSTEM, "You are terse.")], transcript.snapshot())

    def test_clear_without_system_prompt_is_empty(self) -> None:
        transcript = Transcript()
        transcript.append(Message.user("q1"))
        transcript.clear(preserve_system_prompt=True)
        self.assertEqual([], transcript.snapshot())

    def test_clear_can_drop_system_prompt(self) -> None:
        transcript = Transcript("sys")
        transcript.clear(preserve_system_prompt=False)
        self.assertEqual(0, len(transcript))

    def test_estimate_tokens_rounds_up_total_length(self) -> None:
        self.assertEqual(0, estimate_tokens([]))
        self.assertEqual(1, estimate_tokens([Message.user("a")]))
        self.assertEqual(2, estimate_tokens([Message.user("abc"), Message.assistant("defgh")]))
        transcript = Transcript("12345678")
        self.assertEqual(2, transcript.estimate_tokens())

    def test_message_to_dict(self) -> None:
        self.assertEqual({"role": "user", "content": "hi"}, Message.user("hi").to_dict())


if __name__ == "__main__":
    unittest.main()
