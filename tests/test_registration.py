"""Tests for direct team registration."""

from __future__ import annotations

import threading
import unittest
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

from google.api_core import exceptions as gcp_exceptions

from teamforge import notifications
from teamforge.errors import (
    CapacityExceededError,
    ConflictError,
    DuplicatePlayerError,
    TransactionAbortedError,
    ValidationError,
)
from teamforge.teams.services import RegistrationSubmission, TeamService
from teamforge.tournament.ledger import SlotRef
from tests.helpers import FirestoreTestCase, player
from tests.mock_utils import MockTransaction


def squad(prefix):
    return [player(f"{prefix}{i}") for i in range(4)]


def submission(team_name, players, tournament_id="t1", captain_id="cap", reward=None):
    return RegistrationSubmission.from_json(
        {
            "teamName": team_name,
            "tournamentId": tournament_id,
            "players": players,
            "rewardReceiverIGN": reward or players[0]["minecraftIGN"],
        },
        captain_id=captain_id,
    )


class TestRegistrationSubmission(unittest.TestCase):
    def test_requires_team_name(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            RegistrationSubmission.from_json(
                {"teamName": "  ", "tournamentId": "t1", "players": squad("a")}
            )
        self.assertEqual(ctx.exception.field, "teamName")

    def test_reward_receiver_must_be_rostered(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            submission("Foo", squad("a"), reward="Nobody")
        self.assertEqual(ctx.exception.field, "rewardReceiverIGN")

    def test_both_slot_keys_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            RegistrationSubmission.from_json(
                {
                    "teamName": "Foo",
                    "tournamentId": "t1",
                    "tournamentDate": "2024-07-01",
                    "players": squad("a"),
                    "rewardReceiverIGN": "a0",
                }
            )

    def test_legacy_needs_four_players(self) -> None:
        with self.assertRaises(ValidationError):
            RegistrationSubmission.from_json(
                {
                    "teamName": "Foo",
                    "tournamentDate": "2024-07-01",
                    "players": [player("a"), player("b")],
                    "rewardReceiverIGN": "a",
                }
            )

    def test_three_players_never_valid_at_creation(self) -> None:
        with self.assertRaises(ValidationError):
            submission("Foo", squad("a")[:3])


class TestRegisterTeam(FirestoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.create_tournament(max_teams=3)

    def test_register_creates_team_and_reserves_slot(self) -> None:
        received = []

        def receiver(sender, **kwargs):
            received.append((sender, kwargs))

        notifications.team_created.connect(receiver)
        self.addCleanup(notifications.team_created.disconnect, receiver)

        result = TeamService.register_team(submission("Foo", squad("a")), db=self.db)

        self.assertTrue(result["created"])
        team = self.team(result["teamId"])
        self.assertEqual(team["teamName"], "Foo")
        self.assertEqual(team["status"], "pending")
        self.assertEqual(team["captainId"], "cap")
        self.assertEqual(team["memberIds"], ["cap"])
        self.assertIsNone(team["tournamentDate"])
        self.assertIsNone(team["incompleteSince"])
        self.assertEqual(self.tournament()["registeredTeams"], 1)
        self.assertEqual(received, [("t1", {"team_id": result["teamId"], "team_name": "Foo"})])

    def test_concurrent_registrations_fill_exactly_max_teams(self) -> None:
        barrier = threading.Barrier(5)

        def register(i):
            barrier.wait()
            return TeamService.register_team(
                submission(f"Team {i}", squad(f"p{i}_"), captain_id=f"cap{i}"),
                db=self.db,
            )

        with ThreadPoolExecutor(max_workers=5) as executor:
            futures = [executor.submit(register, i) for i in range(5)]
            outcomes = [future.exception() for future in futures]

        successes = [e for e in outcomes if e is None]
        failures = [e for e in outcomes if e is not None]
        self.assertEqual(len(successes), 3)
        self.assertEqual(len(failures), 2)
        self.assertTrue(all(isinstance(e, CapacityExceededError) for e in failures))
        self.assertEqual(self.tournament()["registeredTeams"], 3)
        self.assertTrue(self.tournament()["isClosed"])
        self.assertCounterMatches()

    def test_sequential_registrations_stop_at_max_teams(self) -> None:
        successes, failures = 0, 0
        for i in range(5):
            try:
                TeamService.register_team(
                    submission(f"Team {i}", squad(f"p{i}_"), captain_id=f"cap{i}"),
                    db=self.db,
                )
                successes += 1
            except CapacityExceededError:
                failures += 1

        self.assertEqual((successes, failures), (3, 2))
        self.assertEqual(self.tournament()["registeredTeams"], 3)
        self.assertTrue(self.tournament()["isClosed"])
        self.assertCounterMatches()

    def test_team_name_unique_per_tournament(self) -> None:
        self.create_tournament("t2")
        TeamService.register_team(submission("Foo", squad("a")), db=self.db)

        with self.assertRaises(ConflictError) as ctx:
            TeamService.register_team(
                submission("Foo", squad("b"), captain_id="other"), db=self.db
            )
        self.assertEqual(ctx.exception.identifier, "Foo")

        TeamService.register_team(submission("Foo", squad("c"), "t2"), db=self.db)
        self.assertEqual(self.tournament("t2")["registeredTeams"], 1)
        self.assertCounterMatches()

    def test_roster_key_exclusivity(self) -> None:
        first = [player("Steve", "steve#1"), *squad("a")[1:]]
        TeamService.register_team(submission("A", first, captain_id="c1"), db=self.db)

        clash = [player("Steve", "steve#1"), *squad("b")[1:]]
        with self.assertRaises(DuplicatePlayerError):
            TeamService.register_team(submission("B", clash, captain_id="c2"), db=self.db)

        ok = [player("Steve", "steve#2"), *squad("b")[1:]]
        TeamService.register_team(submission("B", ok, captain_id="c2"), db=self.db)
        self.assertEqual(self.tournament()["registeredTeams"], 2)

    def test_roster_size_must_match_tournament(self) -> None:
        with self.assertRaisesRegex(ValidationError, "exactly 4"):
            TeamService.register_team(
                submission("Foo", [player("a"), player("b")]), db=self.db
            )
        self.assertEqual(self.tournament()["registeredTeams"], 0)

    def test_registration_not_open(self) -> None:
        self.create_tournament("draft", status="draft")
        with self.assertRaisesRegex(CapacityExceededError, "not open"):
            TeamService.register_team(submission("Foo", squad("a"), "draft"), db=self.db)

    def test_admin_add_ignores_status_but_not_capacity(self) -> None:
        self.create_tournament("closed", status="registration_closed", max_teams=1)
        TeamService.register_team(
            submission("Foo", squad("a"), "closed", captain_id=None),
            require_open=False,
            db=self.db,
        )
        with self.assertRaises(CapacityExceededError):
            TeamService.register_team(
                submission("Bar", squad("b"), "closed", captain_id=None),
                require_open=False,
                db=self.db,
            )
        self.assertEqual(self.tournament("closed")["registeredTeams"], 1)

    def test_same_captain_reregistration_updates_in_place(self) -> None:
        first = TeamService.register_team(submission("Foo", squad("a")), db=self.db)
        second = TeamService.register_team(
            submission("Foo", squad("b"), reward="b2"), db=self.db
        )

        self.assertFalse(second["created"])
        self.assertEqual(second["teamId"], first["teamId"])
        team = self.team(first["teamId"])
        self.assertEqual(team["players"][0]["minecraftIGN"], "b0")
        self.assertEqual(team["rewardReceiverIGN"], "b2")
        self.assertEqual(self.tournament()["registeredTeams"], 1)

    def test_captain_already_rostered_elsewhere(self) -> None:
        self.create_team("x", [player("Cap", user_id="cap"), *squad("z")[1:]], "t1")
        with self.assertRaises(ConflictError):
            TeamService.register_team(submission("Foo", squad("a")), db=self.db)

    def test_legacy_date_registration(self) -> None:
        self.create_date(max_teams=1)
        sub = RegistrationSubmission.from_json(
            {
                "teamName": "Oldies",
                "tournamentDate": "2024-07-01",
                "players": squad("a"),
                "rewardReceiverIGN": "a3",
            }
        )
        result = TeamService.register_team(sub, db=self.db)

        team = self.team(result["teamId"])
        self.assertIsNone(team["tournamentId"])
        self.assertIsNone(team["captainId"])
        self.assertEqual(self.date_bucket()["registeredTeams"], 1)
        self.assertTrue(self.date_bucket()["isClosed"])

    def test_failure_inside_transaction_writes_nothing(self) -> None:
        TeamService.register_team(submission("A", squad("a"), captain_id="c1"), db=self.db)
        # Passes the pre-check, fails on the in-transaction roster check.
        with self.assertRaises(DuplicatePlayerError):
            TeamService.register_team(submission("B", squad("a"), captain_id="c2"), db=self.db)

        self.assertTrue(self.db.transactions[-1].rolled_back)
        self.assertEqual(len(self.teams_in()), 1)
        self.assertCounterMatches()

    def test_store_abort_is_reported_as_retryable(self) -> None:
        with patch.object(
            MockTransaction,
            "commit",
            side_effect=gcp_exceptions.Aborted("contention"),
        ):
            with self.assertRaises(TransactionAbortedError) as ctx:
                TeamService.register_team(submission("Foo", squad("a")), db=self.db)

        self.assertEqual(ctx.exception.status_code, 503)
        self.assertEqual(self.teams_in(), [])
        self.assertEqual(self.tournament()["registeredTeams"], 0)

    def test_notification_failure_does_not_undo_registration(self) -> None:
        def broken(sender, **kwargs):
            raise RuntimeError("socket down")

        notifications.teams_changed.connect(broken)
        self.addCleanup(notifications.teams_changed.disconnect, broken)

        with self.assertLogs("teamforge.notifications", level="WARNING"):
            result = TeamService.register_team(submission("Foo", squad("a")), db=self.db)
        self.assertIsNotNone(self.team(result["teamId"]))
        self.assertEqual(SlotRef.from_team(self.team(result["teamId"])).key, "t1")


if __name__ == "__main__":
    unittest.main()
