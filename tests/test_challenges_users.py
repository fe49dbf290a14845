from support import ApiTestCase


class TestChallenges(ApiTestCase):
    def _by_slug(self, user_id=None):
        return {c["slug"]: c for c in self.data(self.get("/v1/challenges", user_id=user_id))}

    def test_defaults_are_seeded_once(self) -> None:
        challenges = self._by_slug()
        self.assertEqual(set(challenges), {"weekly", "30-day", "75-day"})
        self.assertEqual(challenges["75-day"]["prize_amount"], 1000)
        self.assertEqual(len(self._by_slug()), 3)

    def test_enroll_and_progress(self) -> None:
        self.data(self.post("/v1/challenges/weekly/enroll"))
        self.data(self.post("/v1/challenges/weekly/enroll"))
        self.data(self.post("/v1/challenges/weekly/enroll", user_id="rival"))

        self.data(self.put("/v1/challenges/weekly/progress", {"score": 5}, user_id="rival"))
        progress = self.data(self.put("/v1/challenges/weekly/progress", {"score": 12}))
        self.assertEqual(progress["score"], 12)

        weekly = self._by_slug()["weekly"]
        self.assertTrue(weekly["is_enrolled"])
        self.assertEqual(weekly["enrolled_count"], 2)
        self.assertEqual(weekly["leader"]["uid"], self.user_id)
        self.assertEqual(weekly["leader"]["score"], 12)

        other = self._by_slug(user_id="bystander")["weekly"]
        self.assertFalse(other["is_enrolled"])
        self.assertIsNone(self._by_slug()["30-day"]["leader"])

    def test_progress_enrolls_implicitly(self) -> None:
        self.data(self.put("/v1/challenges/30-day/progress", {"score": 3}))
        self.assertTrue(self._by_slug()["30-day"]["is_enrolled"])

    def test_unknown_slug_and_bad_score(self) -> None:
        self.assertError(self.post("/v1/challenges/100-day/enroll"), 404, "NOT_FOUND")
        resp = self.put("/v1/challenges/weekly/progress", {"score": "lots"})
        self.assertError(resp, 400, "VALIDATION_ERROR")


class TestProfile(ApiTestCase):
    def test_defaults_before_first_update(self) -> None:
        profile = self.data(self.get("/v1/users/me/profile"))
        self.assertEqual(profile["water_goal"], 8)
        self.assertIsNone(profile["age"])

    def test_water_goal_is_clamped(self) -> None:
        profile = self.data(self.put("/v1/users/me/profile", {"age": 30, "water_goal": 3}))
        self.assertEqual(profile["water_goal"], 8)
        self.assertEqual(profile["age"], 30)

        profile = self.data(self.put("/v1/users/me/profile", {"water_goal": 10}))
        self.assertEqual(profile["water_goal"], 10)
        self.assertEqual(profile["age"], 30)

    def test_display_name_shows_on_posts(self) -> None:
        self.data(self.put("/v1/users/me/profile", {"display_name": "Asha"}))
        post = self.data(self.post("/v1/feed", {"content": "hello"}))
        self.assertEqual(post["user"]["display_name"], "Asha")

    def test_friends(self) -> None:
        self.data(self.post("/v1/users/me/friends", {"friend_uid": "pal"}))
        self.data(self.post("/v1/users/me/friends", {"friend_uid": "pal"}))

        friends = self.data(self.get("/v1/users/me/friends"))
        self.assertEqual([f["id"] for f in friends], ["pal"])

        resp = self.post("/v1/users/me/friends", {"friend_uid": self.user_id})
        self.assertError(resp, 400, "VALIDATION_ERROR")
