import pytest
from typing import AsyncGenerator, Awaitable, Callable
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import FastAPI

from dispensary.main import create_app
from dispensary.core.config import Settings

API = "/api/v1"


@pytest.fixture(scope="function")
def test_settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file per test."""
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path}/test_dispensary.db",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture(scope="function")
async def app(test_settings: Settings) -> AsyncGenerator[FastAPI, None]:
    """Application with its tables created."""
    application = create_app(test_settings)
    await application.state.database.create_all()
    yield application
    await application.state.database.dispose()


@pytest.fixture(scope="function")
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture(scope="function")
async def db_session(app: FastAPI) -> AsyncGenerator[AsyncSession, None]:
    """A session on the same database the application uses."""
    async with app.state.database.session() as session:
        yield session


@pytest.fixture(scope="function")
def sample_drug_data() -> dict:
    return {
        "code": "PCM500",
        "name": "Paracetamol",
        "genericName": "Acetaminophen",
        "brandName": "Panadol",
        "category": "Analgesics",
        "manufacturer": "GSK",
        "strength": "500mg",
        "dosageForm": "Tablet",
        "quantity": 100,
        "reorderLevel": 20,
        "price": 2.5,
        "cost": 1.2,
        "batchNumber": "B-001",
    }


@pytest.fixture(scope="function")
def sample_patient_data() -> dict:
    return {
        "firstName": "Ada",
        "lastName": "Obi",
        "matricNumber": "CSC/2021/001",
        "phone": "+2348012345678",
        "email": "ada.obi@example.com",
        "department": "Computer Science",
        "level": "300",
        "bloodGroup": "O+",
        "genotype": "AA",
        "allergies": "Penicillin",
    }


@pytest.fixture(scope="function")
def create_drug(client: AsyncClient) -> Callable[..., Awaitable[dict]]:
    """Factory adding a drug through the API and returning its JSON."""
    counter = {"n": 0}

    async def _create(**overrides) -> dict:
        counter["n"] += 1
        payload = {
            "code": f"DRG{counter['n']:03d}",
            "name": f"Drug {counter['n']}",
            "category": "General",
            "quantity": 50,
            "price": 10.0,
        }
        payload.update(overrides)
        response = await client.post(f"{API}/drugs", json=payload)
        assert response.status_code == 201, response.text
        return response.json()["drug"]

    return _create


@pytest.fixture(scope="function")
async def patient(client: AsyncClient, sample_patient_data: dict) -> dict:
    response = await client.post(f"{API}/patients", json=sample_patient_data)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture(scope="function")
async def physician(client: AsyncClient) -> dict:
    response = await client.post(f"{API}/physicians", json={
        "firstName": "Grace",
        "lastName": "Hopper",
        "specialization": "General Practice",
        "qualification": "MBBS",
    })
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture(scope="function")
def create_prescription(
    client: AsyncClient, patient: dict, physician: dict
) -> Callable[..., Awaitable[dict]]:
    """Factory writing a prescription for the shared patient and physician."""

    async def _create(items: list, priority: str = "normal", **extra) -> dict:
        payload = {
            "patientId": patient["id"],
            "physicianId": physician["id"],
            "diagnosis": "Malaria",
            "priority": priority,
            "items": items,
        }
        payload.update(extra)
        response = await client.post(f"{API}/physician/prescriptions", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _create


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "inventory: mark test as inventory related")
    config.addinivalue_line("markers", "prescriptions: mark test as prescription related")
    config.addinivalue_line("markers", "dispensing: mark test as dispensing related")
