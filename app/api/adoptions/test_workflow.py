# app/api/adoptions/test_workflow.py
"""
입양 워크플로우 서비스 테스트

사용법: python -m pytest app/api/adoptions/test_workflow.py -v
"""
import threading
import uuid

import pytest

from app.api.adoptions.workflow import RequestStatus
from app.core.exceptions import (
    AdoptionValidationError, DuplicateRequestError, NotFoundError, ForbiddenError,
    InvalidTransitionError, CascadeFailureError, DeleteFailedError, ListingNotFoundError,
)
from app.models.adoption_request import AdoptionRequestStatus
from app.models.listing import ListingStatus
from app.models.notification import NotificationType

BUCKET = "https://storage.example.com/listings"


def make_listing(listing_store, listing_id="42", owner_id="alice", **overrides):
    data = dict(listing_id=listing_id, name="초코")
    data.update(overrides)
    return listing_store.create(owner_id, data)


def upload_key(kind="photo", owner="alice", ext="jpg"):
    """StorageService.generate_upload_url 과 같은 형식의 키"""
    return f"{kind}-{owner}-{uuid.uuid4()}.{ext}"


def media_url(key):
    return f"{BUCKET}/{key}"


@pytest.fixture(autouse=True)
def listing_42(listing_store):
    """대부분의 테스트가 사용하는 alice 의 게시글 42"""
    return make_listing(listing_store)


# ----------------------------------------------------------------------
# 신청 / 취소 / 상태
# ----------------------------------------------------------------------
def test_submit_then_status_is_pending_and_owner_notified(workflow, listing_store, notification_sink):
    listing = make_listing(listing_store)

    request = workflow.submit_adoption_request(listing.listing_id, "bob", "alice", listing.name)

    assert request.status == AdoptionRequestStatus.PENDING
    assert workflow.get_request_status("42", "bob") == RequestStatus.PENDING
    owner_notifications = notification_sink.for_user("alice")
    assert [n.type for n in owner_notifications] == [NotificationType.ADOPTION_REQUEST]
    assert owner_notifications[0].link == "/post/42"
    assert "초코" in owner_notifications[0].message


def test_second_submit_for_same_pair_is_duplicate(workflow, request_store):
    workflow.submit_adoption_request("42", "bob", "alice", "초코")

    with pytest.raises(DuplicateRequestError):
        workflow.submit_adoption_request("42", "bob", "alice", "초코")
    assert len(request_store.referencing("42")) == 1


def test_owner_cannot_request_own_listing(workflow, request_store):
    with pytest.raises(AdoptionValidationError):
        workflow.submit_adoption_request("42", "alice", "alice", "초코")
    assert request_store.referencing("42") == []


@pytest.mark.parametrize("listing_id,requester_id,owner_id", [
    ("", "bob", "alice"),
    ("42", "", "alice"),
    ("42", "bob", None),
])
def test_missing_identity_is_rejected(workflow, listing_id, requester_id, owner_id):
    with pytest.raises(AdoptionValidationError):
        workflow.submit_adoption_request(listing_id, requester_id, owner_id, "초코")


def test_cancel_removes_request_and_allows_resubmit(workflow, notification_sink):
    workflow.submit_adoption_request("42", "bob", "alice", "초코")

    cancelled = workflow.cancel_adoption_request("42", "bob")

    assert cancelled.status == AdoptionRequestStatus.CANCELLED
    assert workflow.get_request_status("42", "bob") == RequestStatus.NONE
    types = [n.type for n in notification_sink.for_user("alice")]
    assert types == [NotificationType.ADOPTION_REQUEST, NotificationType.ADOPTION_CANCELLED]

    again = workflow.submit_adoption_request("42", "bob", "alice", "초코")
    assert again.status == AdoptionRequestStatus.PENDING


def test_cancel_without_request_is_not_found(workflow, notification_sink):
    with pytest.raises(NotFoundError):
        workflow.cancel_adoption_request("42", "bob")
    assert notification_sink.notifications == []


def test_notification_failure_does_not_fail_submit_or_cancel(workflow, notification_sink):
    notification_sink.fail = True

    workflow.submit_adoption_request("42", "bob", "alice", "초코")
    assert workflow.get_request_status("42", "bob") == RequestStatus.PENDING

    workflow.cancel_adoption_request("42", "bob")
    assert workflow.get_request_status("42", "bob") == RequestStatus.NONE


def test_status_for_anonymous_viewer_is_none(workflow):
    workflow.submit_adoption_request("42", "bob", "alice", "초코")
    assert workflow.get_request_status("42", None) == RequestStatus.NONE


def test_concurrent_submits_produce_exactly_one_request(workflow, request_store):
    barrier = threading.Barrier(8)
    outcomes = []
    outcomes_lock = threading.Lock()

    def submit():
        barrier.wait()
        try:
            workflow.submit_adoption_request("42", "bob", "alice", "초코")
            result = "ok"
        except DuplicateRequestError:
            result = "duplicate"
        with outcomes_lock:
            outcomes.append(result)

    threads = [threading.Thread(target=submit) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("duplicate") == 7
    assert len([r for r in request_store.referencing("42") if r.is_blocking]) == 1


# ----------------------------------------------------------------------
# 승인 / 거절
# ----------------------------------------------------------------------
def test_approve_marks_listing_adopted_and_notifies_requester(workflow, listing_store, notification_sink):
    make_listing(listing_store)
    request = workflow.submit_adoption_request("42", "bob", "alice", "초코")

    decided = workflow.decide_adoption_request(request.request_id, "alice", approve=True)

    assert decided.status == AdoptionRequestStatus.APPROVED
    assert listing_store.get("42").status == ListingStatus.ADOPTED
    assert workflow.get_request_status("42", "bob") == RequestStatus.APPROVED
    assert [n.type for n in notification_sink.for_user("bob")] == [NotificationType.ADOPTION_APPROVED]


def test_approved_request_blocks_resubmission(workflow, listing_store):
    make_listing(listing_store)
    request = workflow.submit_adoption_request("42", "bob", "alice", "초코")
    workflow.decide_adoption_request(request.request_id, "alice", approve=True)

    with pytest.raises(DuplicateRequestError):
        workflow.submit_adoption_request("42", "bob", "alice", "초코")


def test_rejected_request_is_kept_but_does_not_block_resubmission(workflow, listing_store, request_store, notification_sink):
    make_listing(listing_store)
    request = workflow.submit_adoption_request("42", "bob", "alice", "초코")

    workflow.decide_adoption_request(request.request_id, "alice", approve=False)
    assert workflow.get_request_status("42", "bob") == RequestStatus.REJECTED
    assert listing_store.get("42").status == ListingStatus.AVAILABLE
    assert notification_sink.for_user("bob")[-1].type == NotificationType.ADOPTION_REJECTED

    again = workflow.submit_adoption_request("42", "bob", "alice", "초코")
    assert again.request_id != request.request_id
    assert workflow.get_request_status("42", "bob") == RequestStatus.PENDING
    assert request.request_id in request_store.history


def test_only_owner_can_decide(workflow, listing_store):
    make_listing(listing_store)
    request = workflow.submit_adoption_request("42", "bob", "alice", "초코")

    with pytest.raises(ForbiddenError):
        workflow.decide_adoption_request(request.request_id, "mallory", approve=True)


def test_decided_request_cannot_be_decided_again(workflow, listing_store):
    make_listing(listing_store)
    request = workflow.submit_adoption_request("42", "bob", "alice", "초코")
    workflow.decide_adoption_request(request.request_id, "alice", approve=False)

    with pytest.raises(InvalidTransitionError):
        workflow.decide_adoption_request(request.request_id, "alice", approve=True)


def test_list_requests_for_listing_is_owner_only(workflow, listing_store):
    make_listing(listing_store)
    workflow.submit_adoption_request("42", "bob", "alice", "초코")
    workflow.submit_adoption_request("42", "carol", "alice", "초코")

    assert {r.requester_id for r in workflow.list_requests_for_listing("42", "alice")} == {"bob", "carol"}
    with pytest.raises(ForbiddenError):
        workflow.list_requests_for_listing("42", "bob")


def test_submit_to_deleted_listing_is_rejected(workflow, listing_store, request_store):
    listing = listing_store.get("42")
    workflow.delete_listing(listing, requested_by="alice")

    with pytest.raises(ListingNotFoundError):
        workflow.submit_adoption_request("42", "bob", "alice", "초코")
    assert request_store.referencing("42") == []


# ----------------------------------------------------------------------
# 게시글 삭제
# ----------------------------------------------------------------------
def test_delete_listing_removes_requests_media_and_record(workflow, listing_store, request_store, media_store):
    main, photo_a, photo_b = upload_key("listing"), upload_key(), upload_key()
    proof = upload_key("vaccination-proof", ext="png")
    listing = make_listing(
        listing_store,
        main_image_url=media_url(main),
        additional_photo_urls=[media_url(photo_a), media_url(photo_b) + "?alt=media&token=xyz"],
        health_info=f"건강함\n\nVaccination Proof: {media_url(proof)}",
    )
    for requester in ("bob", "carol", "dave"):
        workflow.submit_adoption_request("42", requester, "alice", "초코")

    result = workflow.delete_listing(listing, requested_by="alice")

    assert result.deleted_request_count == 3
    assert result.warnings == []
    assert sorted(result.deleted_media_keys) == sorted([main, photo_a, photo_b, proof])
    assert request_store.referencing("42") == []
    with pytest.raises(ListingNotFoundError):
        listing_store.get("42")


def test_delete_listing_with_failing_blob_returns_single_warning(workflow, listing_store, request_store, media_store):
    one, two = upload_key(), upload_key()
    listing = make_listing(
        listing_store, listing_id="7",
        additional_photo_urls=[media_url(one), media_url(two)],
    )
    for requester in ("bob", "carol", "dave"):
        workflow.submit_adoption_request("7", requester, "alice", "초코")
    media_store.failing_keys.add(two)

    result = workflow.delete_listing(listing)

    assert result.deleted_request_count == 3
    assert request_store.referencing("7") == []
    assert "7" not in listing_store.listings
    assert len(result.warnings) == 1
    assert result.warnings[0].key == two
    assert result.warnings[0].stage == "additional_photo"
    assert media_store.deleted == [one]


def test_delete_listing_skips_empty_media_keys(workflow, listing_store, media_store):
    listing = make_listing(
        listing_store,
        main_image_url=None,
        additional_photo_urls=["", f"{BUCKET}/"],
        health_info="Vaccination Proof: http://insecure.example.com/proof.png",
    )

    result = workflow.delete_listing(listing)

    assert result.deleted_media_keys == []
    assert media_store.deleted == []


def test_delete_listing_never_deletes_media_of_other_users(workflow, listing_store, media_store):
    """다른 사용자가 올린 이미지 URL을 자기 게시글에 넣고 삭제해도 그 파일은 지워지지 않습니다."""
    alice_image = upload_key("listing", owner="alice")
    own_photo = upload_key(owner="mallory")
    listing = make_listing(
        listing_store, listing_id="99", owner_id="mallory",
        main_image_url=media_url(alice_image),
        additional_photo_urls=[media_url(own_photo), media_url("main.jpg")],
        health_info=f"Vaccination Proof: {media_url(upload_key('vaccination-proof', owner='alice', ext='png'))}",
    )

    result = workflow.delete_listing(listing, requested_by="mallory")

    assert media_store.deleted == [own_photo]
    assert result.deleted_media_keys == [own_photo]
    assert result.warnings == []


def test_delete_listing_aborts_when_request_cleanup_fails(workflow, listing_store, request_store, media_store):
    listing = make_listing(listing_store, main_image_url=media_url(upload_key("listing")))
    workflow.submit_adoption_request("42", "bob", "alice", "초코")
    request_store.fail_delete_all = True

    with pytest.raises(CascadeFailureError):
        workflow.delete_listing(listing)

    assert listing_store.get("42") is listing
    assert media_store.deleted == []


def test_delete_listing_reports_orphan_when_record_delete_fails(workflow, listing_store, request_store, media_store):
    bad = upload_key()
    listing = make_listing(listing_store, additional_photo_urls=[media_url(bad)])
    workflow.submit_adoption_request("42", "bob", "alice", "초코")
    listing_store.fail_delete = True
    media_store.failing_keys.add(bad)

    with pytest.raises(DeleteFailedError) as excinfo:
        workflow.delete_listing(listing)

    assert request_store.referencing("42") == []
    assert listing_store.get("42") is listing
    assert [w.key for w in excinfo.value.warnings] == [bad]


def test_delete_listing_by_non_owner_is_forbidden(workflow, listing_store, request_store):
    listing = make_listing(listing_store)
    workflow.submit_adoption_request("42", "bob", "alice", "초코")

    with pytest.raises(ForbiddenError):
        workflow.delete_listing(listing, requested_by="bob")
    assert len(request_store.referencing("42")) == 1


def test_delete_listing_without_requests(workflow, listing_store):
    listing = make_listing(listing_store)
    result = workflow.delete_listing(listing)
    assert result.deleted_request_count == 0


# ----------------------------------------------------------------------
# 게시글 수정
# ----------------------------------------------------------------------
def test_update_listing_replaces_proof_and_cleans_old_media(workflow, listing_store, media_store):
    old_main, old_proof = upload_key("listing"), upload_key("vaccination-proof", ext="png")
    new_main, new_proof = upload_key("listing"), upload_key("vaccination-proof", ext="png")
    make_listing(
        listing_store,
        main_image_url=media_url(old_main),
        health_info=f"건강함\n\nVaccination Proof: {media_url(old_proof)}",
    )

    updated, warnings = workflow.update_listing("42", "alice", {
        "main_image_url": media_url(new_main),
        "vaccination_proof_url": media_url(new_proof),
    })

    assert warnings == []
    assert updated.health_info == f"건강함\n\nVaccination Proof: {media_url(new_proof)}"
    assert sorted(media_store.deleted) == sorted([old_main, old_proof])


def test_update_listing_can_remove_proof(workflow, listing_store, media_store):
    proof = upload_key("vaccination-proof", ext="png")
    make_listing(listing_store, health_info=f"건강함 Vaccination Proof: {media_url(proof)}")

    updated, _ = workflow.update_listing("42", "alice", {"vaccination_proof_url": None})

    assert updated.health_info == "건강함"
    assert media_store.deleted == [proof]


def test_update_listing_keeps_media_of_other_users(workflow, listing_store, media_store):
    borrowed = upload_key("listing", owner="bob")
    make_listing(listing_store, main_image_url=media_url(borrowed))

    workflow.update_listing("42", "alice", {"main_image_url": media_url(upload_key("listing"))})

    assert media_store.deleted == []


def test_update_listing_by_non_owner_is_forbidden(workflow, listing_store):
    make_listing(listing_store)
    with pytest.raises(ForbiddenError):
        workflow.update_listing("42", "bob", {"name": "몽이"})
    assert listing_store.get("42").name == "초코"
