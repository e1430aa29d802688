import uuid

import pytest
from sqlalchemy import func, select

from harvest.config import settings
from harvest.models.farmer import Farmer, FarmerStatus
from harvest.models.project import Project, ProjectStatus
from harvest.schemas.common import Coordinates
from harvest.schemas.farmer import FarmerRequest
from harvest.schemas.project import ProjectRequest
from harvest.services import farmer_service
from harvest.services.errors import (
    AreaExceededError,
    BadRequestError,
    NotFoundError,
    QrCodeExhaustedError,
)


def farmer_request(**overrides) -> FarmerRequest:
    data = {
        "full_name": "Amina Bello",
        "phone_number": "677123456",
        "location": "Yaoundé, Centre",
        "language": "French",
        "area_ha": 10.0,
    }
    data.update(overrides)
    return FarmerRequest(**data)


async def project_count(db, farmer_id) -> int:
    stmt = select(func.count(Project.id)).where(Project.farmer_id == farmer_id)
    return (await db.execute(stmt)).scalar_one()


async def test_create_farmer_with_projects(db, cooperative):
    view = await farmer_service.create_farmer(
        db,
        farmer_request(
            coordinates=Coordinates(latitude=3.85, longitude=11.5, address=" Mvog-Ada "),
            projects=[
                ProjectRequest(crop_name="Maize", area_ha=4.0),
                ProjectRequest(crop_name="Cassava", area_ha=3.5, status=ProjectStatus.PLANNED),
            ],
        ),
        cooperative.id,
    )
    await db.commit()

    assert view.phone_number == "+237677123456"
    assert view.location == "Yaoundé, Centre"
    assert view.status is FarmerStatus.ACTIVE
    assert view.qr_code.startswith("QR-") and len(view.qr_code) == 11
    assert view.allocated_area == 7.5
    assert view.remaining_area == 2.5
    assert view.coordinates.address == "Mvog-Ada"
    assert sorted(p.crop_name for p in view.projects) == ["Cassava", "Maize"]
    assert await project_count(db, view.id) == 2


async def test_create_rejects_over_allocation(db, cooperative):
    with pytest.raises(AreaExceededError):
        await farmer_service.create_farmer(
            db,
            farmer_request(
                area_ha=5.0,
                projects=[
                    ProjectRequest(crop_name="Maize", area_ha=3.0),
                    ProjectRequest(crop_name="Beans", area_ha=3.0),
                ],
            ),
            cooperative.id,
        )
    await db.rollback()
    assert (await db.execute(select(func.count(Farmer.id)))).scalar_one() == 0


async def test_create_rejects_duplicate_phone_and_name(db, cooperative):
    await farmer_service.create_farmer(db, farmer_request(), cooperative.id)
    await db.commit()

    with pytest.raises(BadRequestError, match="phone number \\+237677123456 already exists"):
        await farmer_service.create_farmer(
            db, farmer_request(full_name="Someone Else", phone_number="+237677123456"), cooperative.id
        )
    with pytest.raises(BadRequestError, match='name "Amina Bello" already exists'):
        await farmer_service.create_farmer(
            db, farmer_request(phone_number="699000111"), cooperative.id
        )


async def test_phone_spellings_collide(db, cooperative):
    await farmer_service.create_farmer(db, farmer_request(), cooperative.id)
    await db.commit()

    for spelling in ("237677123456", "+237 677 123 456"):
        with pytest.raises(BadRequestError, match="already exists"):
            await farmer_service.create_farmer(
                db, farmer_request(full_name=f"Farmer {spelling}", phone_number=spelling), cooperative.id
            )


async def test_same_phone_allowed_in_another_cooperative(db, cooperative, other_cooperative):
    await farmer_service.create_farmer(db, farmer_request(), cooperative.id)
    view = await farmer_service.create_farmer(db, farmer_request(), other_cooperative.id)
    await db.commit()
    assert view.cooperative_id == other_cooperative.id


async def test_create_for_unknown_cooperative(db):
    with pytest.raises(NotFoundError, match="Cooperative not found"):
        await farmer_service.create_farmer(db, farmer_request(), uuid.uuid4())


async def test_invalid_fields_are_rejected(db, cooperative):
    with pytest.raises(BadRequestError, match="Full name is required"):
        await farmer_service.create_farmer(db, farmer_request(full_name="   "), cooperative.id)
    with pytest.raises(BadRequestError, match="Invalid Cameroon region"):
        await farmer_service.create_farmer(db, farmer_request(location="Lagos, Lagos"), cooperative.id)
    with pytest.raises(BadRequestError, match="within Cameroon"):
        await farmer_service.create_farmer(
            db,
            farmer_request(coordinates=Coordinates(latitude=48.85, longitude=2.35)),
            cooperative.id,
        )


async def test_update_reconciles_projects(db, cooperative):
    created = await farmer_service.create_farmer(
        db,
        farmer_request(
            projects=[
                ProjectRequest(crop_name="Maize", area_ha=2.0),
                ProjectRequest(crop_name="Cassava", area_ha=3.0),
                ProjectRequest(crop_name="Cocoa", area_ha=1.0),
            ]
        ),
        cooperative.id,
    )
    await db.commit()
    cassava = next(p for p in created.projects if p.crop_name == "Cassava")

    updated = await farmer_service.update_farmer(
        db,
        created.id,
        farmer_request(
            projects=[
                ProjectRequest(id=cassava.id, crop_name="Cassava", area_ha=5.0),
                ProjectRequest(crop_name="Plantain", area_ha=2.0),
            ]
        ),
        cooperative.id,
    )
    await db.commit()

    by_crop = {p.crop_name: p for p in updated.projects}
    assert set(by_crop) == {"Cassava", "Plantain"}
    assert by_crop["Cassava"].id == cassava.id
    assert by_crop["Cassava"].area_ha == 5.0
    assert updated.allocated_area == 7.0
    assert await project_count(db, created.id) == 2


async def test_update_with_same_list_is_idempotent(db, cooperative):
    created = await farmer_service.create_farmer(
        db,
        farmer_request(projects=[ProjectRequest(crop_name="Maize", area_ha=2.0)]),
        cooperative.id,
    )
    await db.commit()
    same = [ProjectRequest(id=p.id, crop_name=p.crop_name, area_ha=p.area_ha) for p in created.projects]

    updated = await farmer_service.update_farmer(db, created.id, farmer_request(projects=same), cooperative.id)
    await db.commit()

    assert [p.id for p in updated.projects] == [p.id for p in created.projects]


async def test_update_with_empty_list_deletes_all_projects(db, cooperative):
    created = await farmer_service.create_farmer(
        db,
        farmer_request(projects=[ProjectRequest(crop_name="Maize", area_ha=2.0)]),
        cooperative.id,
    )
    await db.commit()

    updated = await farmer_service.update_farmer(db, created.id, farmer_request(projects=[]), cooperative.id)
    await db.commit()

    assert updated.projects == []
    assert updated.allocated_area == 0.0
    assert await project_count(db, created.id) == 0


async def test_over_allocated_update_changes_nothing(db, cooperative):
    created = await farmer_service.create_farmer(
        db,
        farmer_request(projects=[ProjectRequest(crop_name="Maize", area_ha=6.0)]),
        cooperative.id,
    )
    await db.commit()
    maize = created.projects[0]

    with pytest.raises(AreaExceededError):
        await farmer_service.update_farmer(
            db,
            created.id,
            farmer_request(
                full_name="Renamed Farmer",
                projects=[
                    ProjectRequest(id=maize.id, crop_name="Maize", area_ha=6.0),
                    ProjectRequest(crop_name="Rice", area_ha=5.0),
                ],
            ),
            cooperative.id,
        )
    await db.rollback()

    view = await farmer_service.get_farmer(db, created.id, cooperative.id)
    assert view.full_name == "Amina Bello"
    assert [(p.crop_name, p.area_ha) for p in view.projects] == [("Maize", 6.0)]


async def test_update_shrinking_farm_below_projects_is_rejected(db, cooperative):
    created = await farmer_service.create_farmer(
        db,
        farmer_request(projects=[ProjectRequest(crop_name="Maize", area_ha=6.0)]),
        cooperative.id,
    )
    await db.commit()
    maize = created.projects[0]

    with pytest.raises(AreaExceededError):
        await farmer_service.update_farmer(
            db,
            created.id,
            farmer_request(area_ha=4.0, projects=[ProjectRequest(id=maize.id, crop_name="Maize", area_ha=6.0)]),
            cooperative.id,
        )


async def test_update_unknown_project_id(db, cooperative, monkeypatch):
    created = await farmer_service.create_farmer(db, farmer_request(), cooperative.id)
    await db.commit()
    stranger = uuid.uuid4()
    body = farmer_request(projects=[ProjectRequest(id=stranger, crop_name="Yam", area_ha=1.0)])

    monkeypatch.setattr(settings, "REJECT_UNKNOWN_PROJECT_IDS", True)
    with pytest.raises(BadRequestError, match="Project not found"):
        await farmer_service.update_farmer(db, created.id, body, cooperative.id)
    await db.rollback()

    monkeypatch.setattr(settings, "REJECT_UNKNOWN_PROJECT_IDS", False)
    updated = await farmer_service.update_farmer(db, created.id, body, cooperative.id)
    await db.commit()
    assert len(updated.projects) == 1
    assert updated.projects[0].id != stranger


async def test_update_keeps_own_phone_and_checks_others(db, cooperative):
    first = await farmer_service.create_farmer(db, farmer_request(), cooperative.id)
    await farmer_service.create_farmer(
        db, farmer_request(full_name="Paul Nkemdirim", phone_number="699000111"), cooperative.id
    )
    await db.commit()

    updated = await farmer_service.update_farmer(
        db, first.id, farmer_request(language="English"), cooperative.id
    )
    await db.commit()
    assert updated.language == "English"

    with pytest.raises(BadRequestError, match="already exists"):
        await farmer_service.update_farmer(
            db, first.id, farmer_request(phone_number="+237699000111"), cooperative.id
        )


async def test_farmer_invisible_to_other_cooperative(db, cooperative, other_cooperative):
    created = await farmer_service.create_farmer(db, farmer_request(), cooperative.id)
    await db.commit()

    with pytest.raises(NotFoundError, match="for your cooperative"):
        await farmer_service.get_farmer(db, created.id, other_cooperative.id)
    with pytest.raises(NotFoundError):
        await farmer_service.update_farmer(db, created.id, farmer_request(), other_cooperative.id)
    with pytest.raises(NotFoundError):
        await farmer_service.delete_farmer(db, created.id, other_cooperative.id)


async def test_delete_removes_projects(db, cooperative):
    created = await farmer_service.create_farmer(
        db,
        farmer_request(projects=[ProjectRequest(crop_name="Maize", area_ha=2.0)]),
        cooperative.id,
    )
    await db.commit()

    await farmer_service.delete_farmer(db, created.id, cooperative.id)
    await db.commit()

    assert await db.get(Farmer, created.id) is None
    assert await project_count(db, created.id) == 0


async def test_update_status(db, cooperative):
    created = await farmer_service.create_farmer(db, farmer_request(), cooperative.id)
    await db.commit()

    view = await farmer_service.update_farmer_status(db, created.id, "inactive", cooperative.id)
    assert view.status is FarmerStatus.INACTIVE
    assert view.projects is None

    with pytest.raises(BadRequestError, match="Invalid status"):
        await farmer_service.update_farmer_status(db, created.id, "ACTIVE", cooperative.id)


async def test_list_farmers_filters_and_paginates(db, cooperative, other_cooperative):
    await farmer_service.create_farmer(
        db,
        farmer_request(projects=[ProjectRequest(crop_name="Maize", area_ha=4.0)]),
        cooperative.id,
    )
    await farmer_service.create_farmer(
        db,
        farmer_request(
            full_name="Paul Nkemdirim",
            phone_number="699000111",
            location="Bamenda, Northwest",
            area_ha=3.0,
            status=FarmerStatus.INACTIVE,
        ),
        cooperative.id,
    )
    await farmer_service.create_farmer(
        db, farmer_request(full_name="Elsewhere", phone_number="699000222"), other_cooperative.id
    )
    await db.commit()

    page = await farmer_service.list_farmers(db, cooperative.id, size=1)
    assert page.total == 2
    assert page.has_next is True
    assert page.items[0].full_name == "Amina Bello"
    assert page.items[0].allocated_area == 4.0
    assert page.items[0].projects is None

    by_area = await farmer_service.list_farmers(db, cooperative.id, sort_by="area", sort_order="desc")
    assert [f.area_ha for f in by_area.items] == [10.0, 3.0]

    inactive = await farmer_service.list_farmers(db, cooperative.id, status="inactive")
    assert [f.full_name for f in inactive.items] == ["Paul Nkemdirim"]

    found = await farmer_service.list_farmers(db, cooperative.id, search="bamenda")
    assert [f.full_name for f in found.items] == ["Paul Nkemdirim"]

    capped = await farmer_service.list_farmers(db, cooperative.id, size=500)
    assert capped.page_size == farmer_service.MAX_PAGE_SIZE

    with pytest.raises(BadRequestError, match="Invalid status filter"):
        await farmer_service.list_farmers(db, cooperative.id, status="retired")


async def test_statistics_do_not_floor_remaining(db, cooperative):
    await farmer_service.create_farmer(
        db,
        farmer_request(projects=[ProjectRequest(crop_name="Maize", area_ha=4.0)]),
        cooperative.id,
    )
    # Legacy row that already breaks the allocation rule.
    legacy = Farmer(
        cooperative_id=cooperative.id,
        full_name="Legacy Farmer",
        phone_number="+237699999999",
        location="Douala, Littoral",
        area_ha=5.0,
        status=FarmerStatus.INACTIVE,
        qr_code="QR-LEGACY01",
    )
    db.add(legacy)
    await db.flush()
    db.add(Project(farmer_id=legacy.id, crop_name="Palm", area_ha=8.0))
    await db.commit()

    stats = await farmer_service.get_farmer_statistics(db, cooperative.id)
    assert stats.total_farmers == 2
    assert stats.active_farmers == 1
    assert stats.inactive_farmers == 1
    assert stats.total_area == 15.0
    assert stats.total_allocated_area == 12.0
    assert stats.total_remaining_area == 3.0

    legacy_view = await farmer_service.get_farmer(db, legacy.id, cooperative.id)
    assert legacy_view.remaining_area == 0.0


async def test_statistics_for_empty_cooperative(db, cooperative):
    stats = await farmer_service.get_farmer_statistics(db, cooperative.id)
    assert stats.total_farmers == 0
    assert stats.total_area == 0.0
    assert stats.total_remaining_area == 0.0


async def test_qr_code_generation_gives_up(db, cooperative, monkeypatch):
    monkeypatch.setattr(farmer_service, "_new_qr_code", lambda: "QR-DEADBEEF")
    await farmer_service.create_farmer(db, farmer_request(), cooperative.id)
    await db.commit()

    with pytest.raises(QrCodeExhaustedError, match="after 5 attempts"):
        await farmer_service.create_farmer(
            db, farmer_request(full_name="Paul Nkemdirim", phone_number="699000111"), cooperative.id
        )


async def test_update_of_foreign_farmer_is_not_found_before_validation(db, cooperative, other_cooperative):
    created = await farmer_service.create_farmer(db, farmer_request(), cooperative.id)
    await db.commit()

    with pytest.raises(NotFoundError):
        await farmer_service.update_farmer(
            db, created.id, farmer_request(phone_number="12345"), other_cooperative.id
        )
    with pytest.raises(NotFoundError):
        await farmer_service.update_farmer(
            db, uuid.uuid4(), farmer_request(location="Nowhere"), cooperative.id
        )


async def test_search_treats_wildcards_literally(db, cooperative):
    await farmer_service.create_farmer(db, farmer_request(), cooperative.id)
    await farmer_service.create_farmer(
        db, farmer_request(full_name="Grace 100% Fon", phone_number="699000111"), cooperative.id
    )
    await db.commit()

    assert (await farmer_service.list_farmers(db, cooperative.id, search="%")).total == 1
    assert (await farmer_service.list_farmers(db, cooperative.id, search="_")).total == 0
    found = await farmer_service.list_farmers(db, cooperative.id, search="100%")
    assert [f.full_name for f in found.items] == ["Grace 100% Fon"]
