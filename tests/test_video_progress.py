import pytest

from app.models.strategy import StrategyVideo
from app.services import subscriptions, video_progress
from app.services.errors import BadRequestError, NotFoundError


class TestPureHelpers:
    def test_progress_percentage_rounds(self):
        assert video_progress.progress_percentage([1], [1, 2, 3]) == 33
        assert video_progress.progress_percentage([1, 2], [1, 2, 3]) == 67
        assert video_progress.progress_percentage([1, 2, 3], [1, 2, 3]) == 100

    def test_progress_percentage_empty_strategy(self):
        assert video_progress.progress_percentage([], []) == 0

    def test_progress_ignores_unknown_ids(self):
        assert video_progress.progress_percentage([1, 99], [1, 2]) == 50

    def test_current_video(self):
        assert video_progress.current_video_id([], [5, 6, 7]) == 5
        assert video_progress.current_video_id([5], [5, 6, 7]) == 6
        assert video_progress.current_video_id([5, 6, 7], [5, 6, 7]) is None

    @pytest.mark.parametrize("completed,video_id,allowed", [
        ([], 5, True),
        ([], 6, False),
        ([5], 6, True),
        ([5], 7, False),
        ([5, 6], 7, True),
    ])
    def test_can_access_video(self, completed, video_id, allowed):
        assert video_progress.can_access_video([5, 6, 7], completed, video_id)[0] is allowed

    def test_can_access_unknown_video(self):
        allowed, reason = video_progress.can_access_video([5, 6], [], 99)
        assert allowed is False
        assert reason == "Video not found in strategy"


@pytest.fixture
def subscribed(db_session, make_user, make_strategy):
    strategy = make_strategy(videos=3)
    sub = subscriptions.create_subscription(db_session, make_user().id, strategy.id)
    return sub, [v.id for v in strategy.videos]


class TestMarkVideoComplete:
    def test_sequential_completion(self, db_session, subscribed):
        sub, (v1, v2, v3) = subscribed

        video_progress.mark_video_complete(db_session, sub, v1)
        video_progress.mark_video_complete(db_session, sub, v2)

        assert sub.completed_videos == [v1, v2]
        summary = video_progress.summarize(db_session, sub)
        assert summary == {"total_videos": 3, "progress_percentage": 67, "current_video_id": v3}

    def test_skipping_ahead_rejected(self, db_session, subscribed):
        sub, (v1, v2, v3) = subscribed

        with pytest.raises(BadRequestError, match="complete previous videos first"):
            video_progress.mark_video_complete(db_session, sub, v2)
        assert sub.completed_videos == []

    def test_completion_is_idempotent(self, db_session, subscribed):
        sub, (v1, _, _) = subscribed

        video_progress.mark_video_complete(db_session, sub, v1)
        video_progress.mark_video_complete(db_session, sub, v1)

        assert sub.completed_videos == [v1]

    def test_unknown_video(self, db_session, subscribed):
        sub, _ = subscribed

        with pytest.raises(NotFoundError):
            video_progress.mark_video_complete(db_session, sub, 9999)

    def test_admin_bypasses_order(self, db_session, subscribed):
        sub, (_, _, v3) = subscribed

        video_progress.mark_video_complete(db_session, sub, v3, is_admin=True)

        assert sub.completed_videos == [v3]

    def test_pending_subscription_cannot_progress(self, db_session, subscribed):
        sub, (v1, _, _) = subscribed
        sub = subscriptions.set_pending(db_session, sub.id)

        with pytest.raises(BadRequestError, match="No active subscription"):
            video_progress.mark_video_complete(db_session, sub, v1)

    def test_hidden_videos_are_skipped_in_order(self, db_session, make_user, make_strategy):
        strategy = make_strategy(videos=3)
        hidden = strategy.videos[1]
        hidden.is_visible = False
        db_session.commit()
        v1, v3 = strategy.videos[0].id, strategy.videos[2].id
        sub = subscriptions.create_subscription(db_session, make_user().id, strategy.id)

        video_progress.mark_video_complete(db_session, sub, v1)
        video_progress.mark_video_complete(db_session, sub, v3)

        assert video_progress.summarize(db_session, sub)["progress_percentage"] == 100


class TestOrderedVideoIds:
    def test_snapshot_order_survives_reordering(self, db_session, subscribed):
        sub, (v1, v2, v3) = subscribed
        video = db_session.query(StrategyVideo).filter(StrategyVideo.id == v3).one()
        video.order = -1
        db_session.commit()

        assert video_progress.ordered_video_ids(db_session, sub) == [v1, v2, v3]

    def test_hidden_and_deleted_videos_drop_out(self, db_session, subscribed):
        sub, (v1, v2, v3) = subscribed
        db_session.query(StrategyVideo).filter(StrategyVideo.id == v2).one().is_visible = False
        db_session.delete(db_session.query(StrategyVideo).filter(StrategyVideo.id == v3).one())
        db_session.commit()

        assert video_progress.ordered_video_ids(db_session, sub) == [v1]

    def test_videos_added_later_follow_the_snapshot(self, db_session, subscribed):
        sub, (v1, v2, v3) = subscribed
        added = StrategyVideo(strategy_id=sub.strategy_id, order=-5, title="Bonus", is_visible=True)
        db_session.add(added)
        db_session.commit()

        assert video_progress.ordered_video_ids(db_session, sub) == [v1, v2, v3, added.id]

    def test_row_without_snapshot_uses_strategy_order(self, db_session, subscribed):
        sub, videos = subscribed
        sub.video_ids = []
        db_session.commit()

        assert video_progress.ordered_video_ids(db_session, sub) == videos

    def test_gating_follows_snapshot_order(self, db_session, subscribed):
        sub, (v1, v2, v3) = subscribed
        db_session.query(StrategyVideo).filter(StrategyVideo.id == v3).one().order = -1
        db_session.commit()

        with pytest.raises(BadRequestError):
            video_progress.mark_video_complete(db_session, sub, v3)
        video_progress.mark_video_complete(db_session, sub, v1)

        progress = video_progress.get_video_progress(db_session, sub)
        assert [v["video_id"] for v in progress["videos"]] == [v1, v2, v3]
        assert progress["current_video_id"] == v2


class TestUpdateVideoProgress:
    def test_admin_can_uncomplete(self, db_session, subscribed):
        sub, (v1, v2, _) = subscribed
        video_progress.mark_video_complete(db_session, sub, v1)
        video_progress.mark_video_complete(db_session, sub, v2)

        video_progress.update_video_progress(db_session, sub, v1, completed=False)

        assert sub.completed_videos == [v2]

    def test_admin_can_complete_out_of_order(self, db_session, subscribed):
        sub, (_, v2, _) = subscribed

        video_progress.update_video_progress(db_session, sub, v2, completed=True)

        assert sub.completed_videos == [v2]

    def test_uncomplete_unknown_video(self, db_session, subscribed):
        sub, _ = subscribed

        with pytest.raises(NotFoundError):
            video_progress.update_video_progress(db_session, sub, 9999, completed=False)


class TestGetVideoProgress:
    def test_locks_and_urls(self, db_session, subscribed):
        sub, (v1, v2, v3) = subscribed
        video_progress.mark_video_complete(db_session, sub, v1)

        progress = video_progress.get_video_progress(db_session, sub)

        assert progress["completed_count"] == 1
        assert progress["current_video_id"] == v2
        flags = {item["video_id"]: (item["is_completed"], item["is_current"], item["is_locked"])
                 for item in progress["videos"]}
        assert flags == {
            v1: (True, False, False),
            v2: (False, True, False),
            v3: (False, False, True),
        }
        locked = [item for item in progress["videos"] if item["is_locked"]]
        assert locked[0]["video_url"] is None

    def test_admin_sees_everything_unlocked(self, db_session, subscribed):
        sub, _ = subscribed

        progress = video_progress.get_video_progress(db_session, sub, is_admin=True)

        assert not any(item["is_locked"] for item in progress["videos"])


class TestValidateVideoAccess:
    def test_first_video_open(self, db_session, subscribed):
        sub, (v1, v2, _) = subscribed

        assert video_progress.validate_video_access(db_session, sub, v1)["can_access"] is True
        assert video_progress.validate_video_access(db_session, sub, v2) == {
            "can_access": False, "reason": "You must complete previous videos first",
        }

    def test_no_subscription(self, db_session):
        result = video_progress.validate_video_access(db_session, None, 1)
        assert result == {"can_access": False, "reason": "No active subscription"}

    def test_admin(self, db_session):
        assert video_progress.validate_video_access(db_session, None, 1, is_admin=True)["can_access"] is True

    def test_video_from_other_strategy(self, db_session, subscribed, make_strategy):
        sub, _ = subscribed
        other = make_strategy(videos=1)

        result = video_progress.validate_video_access(db_session, sub, other.videos[0].id)

        assert result["can_access"] is False
        assert "subscribed strategy" in result["reason"]
