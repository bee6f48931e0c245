import datetime
import unittest
from unittest.mock import patch

from teamforge import create_app
from teamforge.constants import (
    TEAMS_COLLECTION,
    TOURNAMENT_DATES_COLLECTION,
    TOURNAMENT_TYPE_TEAM_SIZE,
    TOURNAMENTS_COLLECTION,
    USERS_COLLECTION,
)
from tests.mock_utils import EnhancedMockFirestore, mock_transactional, patch_mockfirestore

BASE_TIME = datetime.datetime(2024, 6, 1, 12, 0, tzinfo=datetime.timezone.utc)


def player(ign, discord=None, user_id=None):
    """A roster entry; Discord defaults to ``<ign>#1``."""
    entry = {"minecraftIGN": ign, "discordUsername": discord or f"{ign.lower()}#1"}
    if user_id:
        entry["userId"] = user_id
    return entry


class FirestoreTestCase(unittest.TestCase):
    """Runs services against an in-memory Firestore with buffered transactions."""

    def setUp(self):
        patch_mockfirestore()
        self.db = EnhancedMockFirestore()

        patcher = patch("firebase_admin.firestore.transactional", mock_transactional)
        patcher.start()
        self.addCleanup(patcher.stop)

        client_patcher = patch("firebase_admin.firestore.client", return_value=self.db)
        client_patcher.start()
        self.addCleanup(client_patcher.stop)

    # ----- seeding -----

    def create_tournament(
        self,
        tournament_id="t1",
        type="squad",
        max_teams=10,
        registered=0,
        status="registration_open",
        closed_by_admin=False,
    ):
        """Seed a tournament; ``registered`` only sets the counter."""
        data = {
            "name": f"Tournament {tournament_id}",
            "type": type,
            "date": "2024-07-01",
            "startTime": "18:00",
            "registrationDeadline": "2024-06-30T18:00",
            "teamSize": TOURNAMENT_TYPE_TEAM_SIZE[type],
            "maxTeams": max_teams,
            "registeredTeams": registered,
            "isClosed": registered >= max_teams or closed_by_admin,
            "closedByAdmin": closed_by_admin,
            "status": status,
        }
        self.db.collection(TOURNAMENTS_COLLECTION).document(tournament_id).set(data)
        return tournament_id

    def create_date(self, date="2024-07-01", max_teams=10, registered=0):
        self.db.collection(TOURNAMENT_DATES_COLLECTION).document(date).set(
            {
                "date": date,
                "maxTeams": max_teams,
                "registeredTeams": registered,
                "isClosed": registered >= max_teams,
                "closedByAdmin": False,
            }
        )
        return date

    def create_user(self, uid, ign=None, discord=None, role="player"):
        ign = ign or uid.capitalize()
        self.db.collection(USERS_COLLECTION).document(uid).set(
            {
                "displayName": ign,
                "minecraftIGN": ign,
                "discordUsername": discord or f"{ign.lower()}#1",
                "role": role,
            }
        )
        return uid

    def create_team(
        self,
        team_id,
        players,
        tournament_id=None,
        tournament_date=None,
        team_name=None,
        captain_id=None,
        status="pending",
        bump_counter=True,
        created_at=BASE_TIME,
        incomplete_since=None,
    ):
        """Seed a team and, by default, keep the bucket counter in step."""
        member_ids = [uid for uid in [captain_id] + [p.get("userId") for p in players] if uid]
        self.db.collection(TEAMS_COLLECTION).document(team_id).set(
            {
                "teamName": team_name or f"Team {team_id}",
                "tournamentId": tournament_id,
                "tournamentDate": tournament_date,
                "captainId": captain_id,
                "players": players,
                "memberIds": list(dict.fromkeys(member_ids)),
                "rewardReceiverIGN": players[0]["minecraftIGN"] if players else "",
                "status": status,
                "createdAt": created_at,
                "incompleteSince": incomplete_since,
            }
        )
        if bump_counter:
            if tournament_id:
                ref = self.db.collection(TOURNAMENTS_COLLECTION).document(tournament_id)
            else:
                ref = self.db.collection(TOURNAMENT_DATES_COLLECTION).document(tournament_date)
            data = ref.get().to_dict()
            registered = data["registeredTeams"] + 1
            ref.update(
                {
                    "registeredTeams": registered,
                    "isClosed": registered >= data["maxTeams"] or data.get("closedByAdmin", False),
                }
            )
        return team_id

    # ----- reads -----

    def tournament(self, tournament_id="t1"):
        return self.db.collection(TOURNAMENTS_COLLECTION).document(tournament_id).get().to_dict()

    def date_bucket(self, date="2024-07-01"):
        return self.db.collection(TOURNAMENT_DATES_COLLECTION).document(date).get().to_dict()

    def team(self, team_id):
        snapshot = self.db.collection(TEAMS_COLLECTION).document(team_id).get()
        return snapshot.to_dict() if snapshot.exists else None

    def teams_in(self, tournament_id="t1"):
        return [
            doc.to_dict()
            for doc in self.db.collection(TEAMS_COLLECTION).stream()
            if doc.to_dict().get("tournamentId") == tournament_id
        ]

    def assertCounterMatches(self, tournament_id="t1"):
        """``registeredTeams`` equals the number of teams billed to the tournament."""
        self.assertEqual(
            self.tournament(tournament_id)["registeredTeams"],
            len(self.teams_in(tournament_id)),
        )


class AppTestCase(FirestoreTestCase):
    """Route tests against the Flask test client."""

    def setUp(self):
        super().setUp()
        init_patcher = patch("firebase_admin.initialize_app")
        init_patcher.start()
        self.addCleanup(init_patcher.stop)

        self.app = create_app({"TESTING": True, "WTF_CSRF_ENABLED": False})
        self.client = self.app.test_client()

    def login(self, uid):
        with self.client.session_transaction() as sess:
            sess["user_id"] = uid
