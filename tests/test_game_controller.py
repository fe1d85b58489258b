import pytest

from quiz_live.core.errors import InsufficientPlayersError, InvalidTransitionError
from quiz_live.core.events import SessionListener
from quiz_live.core.game_controller import NAME_TAKEN_MESSAGE, SESSION_ENDED_MESSAGE
from quiz_live.core.models import GameStatus

from conftest import answer, join


class RecordingListener(SessionListener):
    def __init__(self):
        self.events = []

    def on_roster_changed(self, names):
        self.events.append(("roster", list(names)))

    def on_round_opened(self, index, question, time_limit_seconds):
        self.events.append(("opened", index, time_limit_seconds))

    def on_submission(self, answered, expected):
        self.events.append(("submission", answered, expected))

    def on_round_result(self, result):
        self.events.append(("result", result.question_index, dict(result.awarded_points)))

    def on_game_over(self, leaderboard):
        self.events.append(("over", [(e.name, e.score) for e in leaderboard]))

    def of_kind(self, kind):
        return [event for event in self.events if event[0] == kind]


@pytest.fixture()
def listener():
    return RecordingListener()


@pytest.fixture()
def observed(make_controller, two_question_quiz, listener):
    return make_controller(two_question_quiz, listener=listener)


def _start_first_round(controller, timers):
    controller.start_game()
    timers.advance(2)
    assert controller.status is GameStatus.IN_ROUND


def test_full_game_scores_and_final_leaderboard(observed, transport, timers, listener):
    join(observed, "c1", "Ava")
    join(observed, "c2", "Ben")

    observed.start_game()
    assert observed.status is GameStatus.STARTING
    timers.advance(2)
    assert observed.round_index == 0

    timers.advance(5)
    answer(observed, "c1", "Ava", 1)
    answer(observed, "c2", "Ben", 1)
    timers.advance(1)

    assert observed.status is GameStatus.ROUND_CLOSED
    assert listener.of_kind("result")[0] == ("result", 0, {"Ava": 350, "Ben": 350})

    observed.advance()
    assert observed.round_index == 1
    answer(observed, "c1", "Ava", 2)
    timers.advance(10)

    assert listener.of_kind("result")[1] == ("result", 1, {"Ava": 200})
    observed.advance()

    assert observed.status is GameStatus.FINISHED
    assert listener.of_kind("over") == [("over", [("Ava", 550), ("Ben", 350)])]
    assert transport.kinds("c1") == [
        "joined",
        "rosterChanged",
        "rosterChanged",
        "gameStarting",
        "question",
        "roundResult",
        "question",
        "roundResult",
        "gameOver",
    ]
    assert transport.last("c2", "gameOver")["leaderboard"] == [
        {"name": "Ava", "score": 550},
        {"name": "Ben", "score": 350},
    ]


def test_question_message_carries_round_details(controller, transport, timers):
    join(controller, "c1", "Ava")
    _start_first_round(controller, timers)

    question = transport.last("c1", "question")

    assert question == {
        "type": "question",
        "index": 0,
        "total": 2,
        "text": "First?",
        "choices": ["A", "B", "C", "D"],
        "timeLimitSeconds": 10,
    }


def test_joined_is_sent_before_roster_update(controller, transport):
    join(controller, "c1", "Ava")

    assert transport.kinds("c1") == ["joined", "rosterChanged"]
    assert transport.last("c1", "joined") == {
        "type": "joined",
        "quizTitle": "Two Questions",
        "questionCount": 2,
    }
    assert transport.last("c1", "rosterChanged")["names"] == ["Ava"]


def test_duplicate_name_gets_error_and_roster_unchanged(controller, transport, listener):
    join(controller, "c1", "Ava")
    join(controller, "c2", "Ava")

    assert transport.messages("c2") == [{"type": "error", "message": NAME_TAKEN_MESSAGE}]
    assert controller.roster() == ["Ava"]
    assert len(transport.messages("c1", "rosterChanged")) == 1


def test_blank_name_is_rejected(controller, transport):
    join(controller, "c1", "   ")

    assert transport.last("c1", "error")["message"] == "Name is required"
    assert controller.roster() == []


def test_second_join_on_same_connection_is_rejected(controller, transport):
    join(controller, "c1", "Ava")
    join(controller, "c1", "Zed")

    assert transport.last("c1", "error")["message"] == "Already joined as Ava"
    assert controller.roster() == ["Ava"]


def test_start_without_players_is_refused(controller):
    with pytest.raises(InsufficientPlayersError):
        controller.start_game()

    assert controller.status is GameStatus.LOBBY


def test_start_twice_is_refused(controller, timers):
    join(controller, "c1", "Ava")
    controller.start_game()

    with pytest.raises(InvalidTransitionError):
        controller.start_game()


def test_advance_outside_closed_round_is_refused(controller, timers):
    join(controller, "c1", "Ava")
    with pytest.raises(InvalidTransitionError):
        controller.advance()

    _start_first_round(controller, timers)
    with pytest.raises(InvalidTransitionError):
        controller.advance()


def test_disconnect_mid_round_closes_when_rest_answered(observed, transport, timers, listener):
    join(observed, "c1", "Ava")
    join(observed, "c2", "Ben")
    _start_first_round(observed, timers)

    answer(observed, "c1", "Ava", 1)
    observed.handle_disconnect("c2")

    assert transport.last("c1", "rosterChanged")["names"] == ["Ava"]
    timers.advance(1)
    assert observed.status is GameStatus.ROUND_CLOSED
    assert listener.of_kind("result")[0][2] == {"Ava": 600}


def test_disconnect_of_unknown_connection_is_ignored(controller, transport):
    join(controller, "c1", "Ava")

    controller.handle_disconnect("stranger")

    assert controller.roster() == ["Ava"]
    assert len(transport.messages("c1", "rosterChanged")) == 1


def test_late_joiner_waits_for_next_round(observed, transport, timers, listener):
    join(observed, "c1", "Ava")
    _start_first_round(observed, timers)

    join(observed, "c3", "Cal")
    assert transport.kinds("c3")[0] == "joined"

    answer(observed, "c3", "Cal", 1)
    assert listener.of_kind("submission") == []

    answer(observed, "c1", "Ava", 1)
    timers.advance(1)
    assert listener.of_kind("result")[0][2] == {"Ava": 600}

    observed.advance()
    answer(observed, "c3", "Cal", 2)
    assert listener.of_kind("submission")[-1] == ("submission", 1, 2)


def test_answer_is_attributed_to_connection_name(observed, timers, listener):
    join(observed, "c1", "Ava")
    join(observed, "c2", "Ben")
    _start_first_round(observed, timers)

    answer(observed, "c1", "Ben", 1)

    assert listener.of_kind("submission") == []
    assert observed.snapshot().answered_count == 0


def test_out_of_range_choice_is_dropped(observed, timers, listener):
    join(observed, "c1", "Ava")
    _start_first_round(observed, timers)

    answer(observed, "c1", "Ava", 4)
    answer(observed, "c1", "Ava", -1)

    assert listener.of_kind("submission") == []


def test_answers_outside_round_are_ignored(observed, timers, listener):
    join(observed, "c1", "Ava")
    answer(observed, "c1", "Ava", 1)
    observed.start_game()
    answer(observed, "c1", "Ava", 1)

    assert listener.of_kind("submission") == []


def test_first_answer_wins(observed, timers, listener):
    join(observed, "c1", "Ava")
    join(observed, "c2", "Ben")
    _start_first_round(observed, timers)

    answer(observed, "c1", "Ava", 0)
    answer(observed, "c1", "Ava", 1)
    answer(observed, "c2", "Ben", 1)
    timers.advance(1)

    assert listener.of_kind("result")[0][2] == {"Ava": 0, "Ben": 600}


def test_round_closes_once_when_grace_and_expiry_coincide(observed, timers, listener, transport):
    join(observed, "c1", "Ava")
    _start_first_round(observed, timers)

    timers.advance(9)
    answer(observed, "c1", "Ava", 1)
    timers.advance(5)

    assert len(listener.of_kind("result")) == 1
    assert len(transport.messages("c1", "roundResult")) == 1
    assert listener.of_kind("result")[0][2] == {"Ava": 150}


def test_snapshot_reports_round_progress(controller, timers):
    join(controller, "c1", "Ava")
    join(controller, "c2", "Ben")
    _start_first_round(controller, timers)
    timers.advance(3)
    answer(controller, "c1", "Ava", 1)

    snapshot = controller.snapshot()

    assert snapshot.status is GameStatus.IN_ROUND
    assert snapshot.round_index == 0
    assert snapshot.remaining_seconds == 7
    assert snapshot.answered_count == 1
    assert snapshot.expected_count == 2
    assert [p.name for p in snapshot.players] == ["Ava", "Ben"]


def test_failing_send_does_not_block_other_players(controller, transport, timers):
    join(controller, "c1", "Ava")
    join(controller, "c2", "Ben")
    transport.failing.add("c2")

    _start_first_round(controller, timers)

    assert transport.kinds("c1")[-2:] == ["gameStarting", "question"]
    assert transport.messages("c2", "question") == []


def test_shutdown_stops_all_timers(observed, transport, timers, listener):
    join(observed, "c1", "Ava")
    _start_first_round(observed, timers)

    observed.shutdown()
    timers.advance(60)

    assert listener.of_kind("result") == []
    assert transport.last("c1", "error")["message"] == SESSION_ENDED_MESSAGE
    assert transport.closed == ["c1"]
    assert timers.pending() == []
    assert observed.is_shut_down


def test_shutdown_during_start_delay_cancels_first_question(controller, transport, timers):
    join(controller, "c1", "Ava")
    controller.start_game()

    controller.shutdown()
    controller.shutdown()
    timers.advance(5)

    assert transport.messages("c1", "question") == []
    assert transport.closed == ["c1"]


def test_messages_after_shutdown_are_ignored(controller, transport):
    controller.shutdown()
    join(controller, "c1", "Ava")

    assert transport.messages("c1") == []


def test_finished_session_ignores_joins(controller, transport, timers):
    join(controller, "c1", "Ava")
    _start_first_round(controller, timers)
    timers.advance(10)
    controller.advance()
    timers.advance(10)
    controller.advance()
    assert controller.status is GameStatus.FINISHED

    join(controller, "c9", "Zoe")

    assert transport.messages("c9") == []
    assert controller.roster() == ["Ava"]


def test_malformed_and_unknown_messages_are_ignored(controller, transport):
    controller.handle_message("c1", "{not json")
    controller.handle_message("c1", {"type": "wave"})
    controller.handle_message("c1", {"type": "gameOver", "leaderboard": []})

    assert transport.sent == []
    assert controller.status is GameStatus.LOBBY


def test_padded_join_name_still_answers(observed, timers, listener):
    join(observed, "c1", " Ava ")
    _start_first_round(observed, timers)

    answer(observed, "c1", " Ava ", 1)
    timers.advance(1)

    assert observed.roster() == ["Ava"]
    assert listener.of_kind("submission") == [("submission", 1, 1)]
    assert listener.of_kind("result")[0][2] == {"Ava": 600}


def test_shutdown_closes_every_connection_that_reached_the_session(controller, transport):
    join(controller, "c1", "Ava")
    join(controller, "c2", "Ava")
    controller.handle_message("c3", {"type": "wave"})
    join(controller, "c4", "Dee")
    controller.handle_disconnect("c4")

    controller.shutdown()

    assert set(transport.closed) == {"c1", "c2", "c3"}
    for connection in ("c1", "c2", "c3"):
        assert transport.last(connection, "error")["message"] == SESSION_ENDED_MESSAGE
    assert transport.last("c4", "error") is None
