from fastapi import APIRouter

from dispensary.api.v1.drugs import routes as drugs
from dispensary.api.v1.inventory import routes as inventory
from dispensary.api.v1.prescriptions import routes as prescriptions
from dispensary.api.v1.dispensing import routes as dispensing
from dispensary.api.v1.dashboard import routes as dashboard
from dispensary.api.v1.patients import routes as patients
from dispensary.api.v1.users import routes as users

api_router = APIRouter()
api_router.include_router(drugs.router)
api_router.include_router(inventory.router)
api_router.include_router(prescriptions.router)
api_router.include_router(dispensing.router)
api_router.include_router(dashboard.router)
api_router.include_router(patients.router)
api_router.include_router(users.router)
