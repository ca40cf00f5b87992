"""
Tests for the built-in fitness tool handlers.
"""

import pytest

import tools_fitness as tf


class TestPlanWorkout:

    def test_strength_with_dumbbells(self):
        plan = tf.plan_workout({"goal": "strength", "duration": 45, "equipment": ["dumbbells"]})
        keys = [e["exercise"] for e in plan["exercises"]]
        assert keys[0] == "goblet_squat"
        assert len(keys) == 2
        assert all(e["sets"] == 4 and e["reps"] == "5" for e in plan["exercises"])
        assert plan["warmup_minutes"] == 5 and plan["cooldown_minutes"] == 5
        assert plan["estimated_minutes"] <= 45
        assert plan["summary"].startswith("45-minute strength workout")

    def test_barbell_moves_need_a_barbell(self):
        plan = tf.plan_workout({"goal": "hypertrophy", "duration": 60})
        for e in plan["exercises"]:
            assert tf.EXERCISE_LIBRARY[e["exercise"]]["equipment"] == ["bodyweight"]

    def test_short_session_skips_warmup(self):
        plan = tf.plan_workout({"goal": "weight_loss", "duration": 15})
        assert plan["warmup_minutes"] == 0
        assert len(plan["exercises"]) >= 1

    def test_beginner_gets_no_advanced_moves(self):
        plan = tf.plan_workout({"goal": "general", "duration": 90, "fitness_level": "beginner",
                                "equipment": ["dumbbells", "kettlebell", "pull_up_bar"]})
        for e in plan["exercises"]:
            assert tf.EXERCISE_LIBRARY[e["exercise"]]["difficulty"] == "beginner"

    @pytest.mark.parametrize("duration", [5, 200])
    def test_duration_out_of_range(self, duration):
        with pytest.raises(ValueError):
            tf.plan_workout({"goal": "strength", "duration": duration})


class TestExerciseLookup:

    def test_alias_resolves(self):
        assert tf.normalize_exercise("Push-ups") == "push_ups"
        assert tf.normalize_exercise("squat") == "squats"
        assert tf.normalize_exercise("moonwalk") is None

    def test_lookup(self):
        info = tf.lookup_exercise({"name": "deadlift"})
        assert info["name"] == "Deadlift"
        assert "hamstrings" in info["muscles"]
        assert info["common_mistakes"]
        assert info["summary"].startswith("Deadlift works")

    def test_unknown_exercise(self):
        with pytest.raises(ValueError, match="Unknown exercise"):
            tf.lookup_exercise({"name": "underwater basket weaving"})

    def test_recommend_caps_results(self):
        rec = tf.recommend_exercises({"muscle_groups": ["quads", "glutes", "hamstrings"],
                                      "equipment": ["dumbbells", "barbell", "kettlebell"],
                                      "difficulty": "advanced"})
        assert 1 <= len(rec["recommendations"]) <= tf.MAX_RECOMMENDATIONS

    def test_recommend_nothing_matches(self):
        with pytest.raises(ValueError):
            tf.recommend_exercises({"muscle_groups": ["biceps"], "difficulty": "beginner"})


class TestAnalysis:

    def test_form_checklist(self):
        data = tf.analyze_form({"exercise": "bench press", "media": b"\x89PNG"})
        assert data["exercise"] == "bench_press"
        assert data["media_received"] is True
        assert data["checkpoints"]

    def test_nutrition_totals(self):
        data = tf.analyze_nutrition({"food": "2 eggs and toast with avocado"})
        assert {"food": "egg", "servings": 2.0} in data["items"]
        assert data["calories"] == 2 * 78 + 240
        assert "toast" in data["unrecognized"]

    def test_nutrition_prefers_longest_name(self):
        data = tf.analyze_nutrition({"food": "sweet potato"})
        assert data["items"] == [{"food": "sweet potato", "servings": 1.0}]

    def test_nutrition_photo_only_needs_vision(self):
        with pytest.raises(ValueError, match="vision"):
            tf.analyze_nutrition({"media": b"jpeg"})

    def test_nutrition_nothing_recognized(self):
        with pytest.raises(ValueError, match="No recognizable foods"):
            tf.analyze_nutrition({"food": "mystery stew"})

    def test_biometrics_readiness(self):
        data = tf.analyze_biometrics({"resting_heart_rate": 80, "sleep_hours": 5, "hrv": 25})
        assert data["readiness"] == 100 - 15 - 20 - 25
        assert "Prioritize recovery" in data["recommendation"]

    def test_biometrics_zone(self):
        data = tf.analyze_biometrics({"heart_rate": 150, "age": 30})
        assert data["heart_rate_zone"] == "tempo"

    def test_biometrics_needs_readings(self):
        with pytest.raises(ValueError):
            tf.analyze_biometrics({"age": 30})

    def test_progress_trend(self):
        data = tf.track_progress({"metric": "strength", "data_points": [100, 105, 110]})
        assert data["trend"] == "improving"
        assert data["change_percent"] == 10.0

    def test_progress_needs_two_points(self):
        with pytest.raises(ValueError, match="Not enough"):
            tf.track_progress({"metric": "weight", "data_points": [80]})


class TestVoiceCoach:

    def test_working_phase_adds_exercise_cue(self):
        data = tf.voice_coach({"exercise": "squats", "phase": "working"})
        assert data["cues"][0] == tf.EXERCISE_LIBRARY["squats"]["cues"][0]
        assert data["next_phase"] == "rest"

    def test_phases_end_in_complete(self):
        assert tf.next_phase("cooldown") == "complete"
