"""Tests for move, disband, roster changes and review status."""

from __future__ import annotations

import datetime
import unittest

from teamforge.errors import (
    CapacityExceededError,
    ConflictError,
    DuplicatePlayerError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from teamforge.teams.services import TeamService
from teamforge.tournament.ledger import SlotRef
from tests.helpers import BASE_TIME, FirestoreTestCase, player


def squad(prefix, captain=None):
    players = [player(f"{prefix}{i}") for i in range(4)]
    if captain:
        players[0]["userId"] = captain
    return players


class TestMoveTeam(FirestoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.create_tournament("a", max_teams=10)
        self.create_tournament("b", max_teams=10)
        for i in range(4):
            self.create_team(f"a{i}", squad(f"a{i}_"), "a")
        for i in range(9):
            self.create_team(f"b{i}", squad(f"b{i}_"), "b")
        self.create_team("t", squad("mover", captain="cap"), "a", team_name="Movers", captain_id="cap")

    def test_move_updates_both_counters_together(self) -> None:
        self.assertEqual(self.tournament("a")["registeredTeams"], 5)
        self.assertEqual(self.tournament("b")["registeredTeams"], 9)

        moved = TeamService.move_team("t", SlotRef(tournament_id="b"), db=self.db)

        self.assertEqual(moved["tournamentId"], "b")
        self.assertEqual(self.tournament("a")["registeredTeams"], 4)
        self.assertFalse(self.tournament("a")["isClosed"])
        self.assertEqual(self.tournament("b")["registeredTeams"], 10)
        self.assertTrue(self.tournament("b")["isClosed"])
        self.assertCounterMatches("a")
        self.assertCounterMatches("b")
        # One transaction carried every write.
        self.assertEqual(len(self.db.transactions), 1)

    def test_move_into_full_tournament_changes_nothing(self) -> None:
        self.create_tournament("full", max_teams=1)
        self.create_team("f", squad("f"), "full")

        with self.assertRaises(CapacityExceededError):
            TeamService.move_team("t", SlotRef(tournament_id="full"), db=self.db)

        self.assertEqual(self.team("t")["tournamentId"], "a")
        self.assertEqual(self.tournament("a")["registeredTeams"], 5)
        self.assertEqual(self.tournament("full")["registeredTeams"], 1)

    def test_move_name_collision(self) -> None:
        self.create_team("dup", squad("dup"), "b", team_name="Movers", bump_counter=False)
        self.db.collection("tournaments").document("b").update({"registeredTeams": 9})
        with self.assertRaises(ConflictError):
            TeamService.move_team("t", SlotRef(tournament_id="b"), db=self.db)
        self.assertEqual(self.tournament("a")["registeredTeams"], 5)

    def test_move_roster_collision(self) -> None:
        self.create_tournament("c", max_teams=10)
        self.create_team("c0", [player("mover1"), *squad("c")[1:]], "c")
        with self.assertRaises(DuplicatePlayerError):
            TeamService.move_team("t", SlotRef(tournament_id="c"), db=self.db)
        self.assertEqual(self.team("t")["tournamentId"], "a")

    def test_move_requires_matching_team_size(self) -> None:
        self.create_tournament("duo", type="duo")
        with self.assertRaises(ValidationError):
            TeamService.move_team("t", SlotRef(tournament_id="duo"), db=self.db)

    def test_cross_mode_move_rejected(self) -> None:
        self.create_date()
        with self.assertRaises(ValidationError):
            TeamService.move_team("t", SlotRef(tournament_date="2024-07-01"), db=self.db)

    def test_date_to_date_move(self) -> None:
        self.create_date("2024-07-01")
        self.create_date("2024-07-08", max_teams=1)
        self.create_team("old", squad("old"), tournament_date="2024-07-01")

        TeamService.move_team("old", SlotRef(tournament_date="2024-07-08"), db=self.db)

        self.assertEqual(self.team("old")["tournamentDate"], "2024-07-08")
        self.assertEqual(self.date_bucket("2024-07-01")["registeredTeams"], 0)
        self.assertTrue(self.date_bucket("2024-07-08")["isClosed"])

    def test_move_with_status_change(self) -> None:
        TeamService.move_team(
            "t", SlotRef(tournament_id="b"), status="approved", actor_role="admin", db=self.db
        )
        self.assertEqual(self.team("t")["status"], "approved")

    def test_move_with_forbidden_status_moves_nothing(self) -> None:
        with self.assertRaises(ForbiddenError):
            TeamService.move_team(
                "t", SlotRef(tournament_id="b"), status="pending", actor_role="admin", db=self.db
            )
        self.assertEqual(self.team("t")["tournamentId"], "a")
        self.assertEqual(self.tournament("b")["registeredTeams"], 9)

    def test_move_missing_team(self) -> None:
        with self.assertRaises(NotFoundError):
            TeamService.move_team("nope", SlotRef(tournament_id="b"), db=self.db)


class TestDisband(FirestoreTestCase):
    def test_disband_releases_slot_and_reopens(self) -> None:
        self.create_tournament(max_teams=1)
        self.create_team("t", squad("a"), "t1")
        self.assertTrue(self.tournament()["isClosed"])

        TeamService.disband_team("t", db=self.db)

        self.assertIsNone(self.team("t"))
        self.assertEqual(self.tournament()["registeredTeams"], 0)
        self.assertFalse(self.tournament()["isClosed"])

    def test_disband_missing_team(self) -> None:
        with self.assertRaises(NotFoundError):
            TeamService.disband_team("nope", db=self.db)


class TestLeaveAndRemove(FirestoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.create_tournament("duo", type="duo", max_teams=2)
        self.create_tournament("sq", type="squad")
        self.create_tournament("solo", type="solo")
        self.create_team(
            "pair",
            [player("Cap", user_id="cap"), player("Mate", user_id="mate")],
            "duo",
            captain_id="cap",
        )
        self.create_team(
            "four",
            [
                player("Cap", user_id="cap"),
                player("U2", user_id="u2"),
                player("U3", user_id="u3"),
                player("U4", user_id="u4"),
            ],
            "sq",
            captain_id="cap",
        )
        self.db.collection("teams").document("four").update({"rewardReceiverIGN": "U3"})
        self.create_team("one", [player("Lone", user_id="lone")], "solo", captain_id="lone")

    def test_duo_leave_disbands_and_releases_slot(self) -> None:
        self.assertEqual(self.tournament("duo")["registeredTeams"], 1)
        result = TeamService.leave_team("pair", "mate", db=self.db)

        self.assertIn("disbanded", result["message"])
        self.assertIsNone(self.team("pair"))
        self.assertEqual(self.tournament("duo")["registeredTeams"], 0)

    def test_squad_leave_shrinks_and_reassigns_reward(self) -> None:
        TeamService.leave_team("four", "u3", db=self.db)

        team = self.team("four")
        self.assertEqual([p["minecraftIGN"] for p in team["players"]], ["Cap", "U2", "U4"])
        self.assertEqual(team["memberIds"], ["cap", "u2", "u4"])
        self.assertEqual(team["rewardReceiverIGN"], "Cap")
        self.assertIsNotNone(team["incompleteSince"])
        self.assertEqual(self.tournament("sq")["registeredTeams"], 1)

    def test_captain_cannot_leave_non_solo(self) -> None:
        with self.assertRaises(ForbiddenError):
            TeamService.leave_team("four", "cap", db=self.db)

    def test_solo_leave_withdraws(self) -> None:
        TeamService.leave_team("one", "lone", db=self.db)
        self.assertIsNone(self.team("one"))
        self.assertEqual(self.tournament("solo")["registeredTeams"], 0)

    def test_stranger_cannot_leave(self) -> None:
        with self.assertRaises(ForbiddenError):
            TeamService.leave_team("four", "stranger", db=self.db)

    def test_leave_after_registration_closed(self) -> None:
        self.db.collection("tournaments").document("sq").update({"status": "registration_closed"})
        with self.assertRaises(ForbiddenError):
            TeamService.leave_team("four", "u2", db=self.db)

    def test_captain_removes_player(self) -> None:
        TeamService.remove_player("four", "cap", "u2", db=self.db)
        self.assertEqual(len(self.team("four")["players"]), 3)

    def test_remove_in_duo_disbands(self) -> None:
        TeamService.remove_player("pair", "cap", "mate", db=self.db)
        self.assertIsNone(self.team("pair"))
        self.assertEqual(self.tournament("duo")["registeredTeams"], 0)

    def test_remove_rules(self) -> None:
        with self.assertRaises(ForbiddenError):
            TeamService.remove_player("four", "u2", "u3", db=self.db)
        with self.assertRaises(ValidationError):
            TeamService.remove_player("four", "cap", "cap", db=self.db)
        with self.assertRaises(NotFoundError):
            TeamService.remove_player("four", "cap", "ghost", db=self.db)


class TestCaptaincyAndStatus(FirestoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.create_tournament()
        self.create_team(
            "t",
            [player("Cap", user_id="cap"), player("U2", user_id="u2"), player("C"), player("D")],
            "t1",
            captain_id="cap",
        )

    def test_transfer_captaincy(self) -> None:
        TeamService.transfer_captaincy("t", "cap", "u2", db=self.db)
        team = self.team("t")
        self.assertEqual(team["captainId"], "u2")
        self.assertEqual(team["memberIds"], ["u2", "cap"])
        self.assertEqual(self.tournament()["registeredTeams"], 1)

    def test_transfer_rules(self) -> None:
        with self.assertRaises(ForbiddenError):
            TeamService.transfer_captaincy("t", "u2", "cap", db=self.db)
        with self.assertRaises(ValidationError):
            TeamService.transfer_captaincy("t", "cap", "outsider", db=self.db)
        with self.assertRaises(ValidationError):
            TeamService.transfer_captaincy("t", "cap", "cap", db=self.db)

    def test_status_transitions(self) -> None:
        TeamService.set_status("t", "approved", "admin", db=self.db)
        TeamService.set_status("t", "rejected", "admin", db=self.db)
        self.assertEqual(self.team("t")["status"], "rejected")

        with self.assertRaises(ForbiddenError):
            TeamService.set_status("t", "pending", "admin", db=self.db)
        TeamService.set_status("t", "pending", "super_admin", db=self.db)
        self.assertEqual(self.team("t")["status"], "pending")

    def test_same_state_and_unknown_status(self) -> None:
        with self.assertRaises(ForbiddenError):
            TeamService.set_status("t", "pending", "super_admin", db=self.db)
        with self.assertRaises(ValidationError):
            TeamService.set_status("t", "maybe", "admin", db=self.db)
        with self.assertRaises(ForbiddenError):
            TeamService.set_status("t", "approved", "player", db=self.db)

    def test_status_change_leaves_ledger_alone(self) -> None:
        TeamService.set_status("t", "approved", "admin", db=self.db)
        self.assertEqual(self.tournament()["registeredTeams"], 1)

    def test_roster_edit_only_while_pending(self) -> None:
        new_roster = [player("W"), player("X"), player("Y"), player("Z")]
        TeamService.update_roster("t", new_roster, "Y", actor_role="admin", db=self.db)
        self.assertEqual(self.team("t")["rewardReceiverIGN"], "Y")

        TeamService.set_status("t", "approved", "admin", db=self.db)
        with self.assertRaises(ForbiddenError):
            TeamService.update_roster("t", reward_receiver_ign="X", actor_role="admin", db=self.db)
        TeamService.update_roster(
            "t", reward_receiver_ign="X", actor_role="super_admin", db=self.db
        )
        self.assertEqual(self.team("t")["rewardReceiverIGN"], "X")

    def test_roster_edit_validates(self) -> None:
        with self.assertRaises(ValidationError):
            TeamService.update_roster("t", [player("W")], actor_role="admin", db=self.db)
        with self.assertRaises(ValidationError):
            TeamService.update_roster("t", reward_receiver_ign="Nobody", actor_role="admin", db=self.db)
        self.create_team("other", [player("Taken"), player("E"), player("F"), player("G")], "t1")
        with self.assertRaises(DuplicatePlayerError):
            TeamService.update_roster(
                "t",
                [player("Taken"), player("X"), player("Y"), player("Z")],
                "X",
                actor_role="admin",
                db=self.db,
            )


class TestReconcileIncompleteTeams(FirestoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.create_tournament()
        self.create_team("full", squad("f"), "t1")
        self.create_team(
            "stale",
            squad("s")[:3],
            "t1",
            incomplete_since=BASE_TIME - datetime.timedelta(hours=72),
        )
        self.create_team(
            "fresh",
            squad("r")[:3],
            "t1",
            incomplete_since=BASE_TIME - datetime.timedelta(hours=1),
        )

    def test_disbands_only_past_grace(self) -> None:
        disbanded = TeamService.reconcile_incomplete_teams(
            SlotRef(tournament_id="t1"), grace_hours=48, now=BASE_TIME, db=self.db
        )
        self.assertEqual(disbanded, ["stale"])
        self.assertIsNotNone(self.team("fresh"))
        self.assertEqual(self.tournament()["registeredTeams"], 2)
        self.assertCounterMatches()

    def test_force_disbands_every_short_team(self) -> None:
        disbanded = TeamService.reconcile_incomplete_teams(
            SlotRef(tournament_id="t1"), force=True, now=BASE_TIME, db=self.db
        )
        self.assertEqual(sorted(disbanded), ["fresh", "stale"])
        self.assertIsNotNone(self.team("full"))
        self.assertCounterMatches()


class TestGetTeam(FirestoreTestCase):
    def test_members_only(self) -> None:
        self.create_tournament()
        self.create_team("t", [player("Cap", user_id="cap"), *squad("x")[1:]], "t1", captain_id="cap")
        self.assertEqual(TeamService.get_team_for_member("t", "cap", db=self.db)["id"], "t")
        with self.assertRaises(NotFoundError):
            TeamService.get_team_for_member("t", "stranger", db=self.db)

    def test_list_for_member_newest_first(self) -> None:
        self.create_tournament()
        self.create_tournament("t2")
        self.create_team(
            "captained",
            [player("Cap", user_id="cap"), *squad("x")[1:]],
            "t1",
            captain_id="cap",
            created_at=BASE_TIME,
        )
        self.create_team(
            "joined",
            [player("Other", user_id="other"), player("Cap", user_id="cap"), *squad("y")[2:]],
            "t2",
            captain_id="other",
            created_at=BASE_TIME + datetime.timedelta(days=1),
        )
        self.create_team("unrelated", squad("z"), "t1", captain_id="other")

        teams = TeamService.list_for_member("cap", db=self.db)

        self.assertEqual([t["id"] for t in teams], ["joined", "captained"])
        self.assertEqual(TeamService.list_for_member("nobody", db=self.db), [])


if __name__ == "__main__":
    unittest.main()
