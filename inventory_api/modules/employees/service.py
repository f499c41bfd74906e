import logging
from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_api.core.exceptions import api_response
from inventory_api.shared.database.models import Employee, Permission
from .repository import EmployeeRepository
from .schemas import EmployeeCreate, UserUpdate

logger = logging.getLogger(__name__)


def _employee_row(employee: Employee, permission: Optional[Permission]) -> Dict[str, Any]:
    return {
        "employee": employee.to_dict(),
        "permissions": permission.to_dict() if permission else None,
    }


class EmployeeService:

    def __init__(self, db: Session):
        self.db = db
        self.repository = EmployeeRepository(db)

    # ===== EMPLEADOS =====

    def get_all(self) -> Dict[str, Any]:
        rows = [_employee_row(e, p) for e, p in self.repository.get_all()]
        if not rows:
            return api_response("No employees found", [], success=False)
        return api_response("Successfully fetched all employees", rows)

    def get_by_user_id(self, user_id: str) -> Dict[str, Any]:
        rows = [_employee_row(e, p) for e, p in self.repository.get_by_user_id(user_id)]
        if not rows:
            return api_response("No data found", [], success=False)
        return api_response("Fetching db data", rows)

    def get_by_warehouse(self, warehouse_id: str) -> Dict[str, Any]:
        rows = [_employee_row(e, p) for e, p in self.repository.get_by_warehouse(warehouse_id)]
        if not rows:
            return api_response(f"No employees found for warehouse ID: {warehouse_id}", [], success=False)
        return api_response(f"Successfully fetched employees for warehouse ID: {warehouse_id}", rows)

    def create(self, data: EmployeeCreate) -> Dict[str, Any]:
        employee_data = data.model_dump()
        if employee_data["passcode"] is None:
            employee_data["passcode"] = 1111

        try:
            employee = self.repository.create(employee_data)
        except IntegrityError as e:
            message = str(e.orig).lower()
            if "foreign key" in message:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Failed to create employee - invalid warehouse ID, user ID, or permissions ID"
                )
            if "unique" in message or "duplicate" in message:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Failed to create employee - duplicate entry detected"
                )
            raise

        logger.info(f"Empleado creado {employee.id} en almacén {employee.warehouse_id}")
        created = self.repository.get_by_id(employee.id)
        return api_response("Employee created successfully", _employee_row(*created))

    # ===== USUARIOS =====

    def get_users(self) -> Dict[str, Any]:
        users = [
            {"id": u.id, "name": u.name, "email": u.email}
            for u in self.repository.get_users()
        ]
        return api_response("Users retrieved successfully" if users else "No users found", users)

    def update_user(self, data: UserUpdate) -> Dict[str, Any]:
        if data.role is None and data.warehouse_id is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="At least one field (role or warehouseId) must be provided"
            )

        user = self.repository.get_user(data.user_id)
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"User with ID '{data.user_id}' not found"
            )

        update_data = {}
        if data.role is not None:
            update_data["role"] = data.role.value
        if data.warehouse_id is not None:
            update_data["warehouse_id"] = data.warehouse_id

        try:
            user = self.repository.update_user(user, update_data)
        except IntegrityError as e:
            if "foreign key" in str(e.orig).lower():
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Invalid warehouse ID - the specified warehouse does not exist"
                )
            raise

        return api_response("User updated successfully", user.to_dict())

    # ===== PERMISOS =====

    def get_permissions(self) -> Dict[str, Any]:
        permissions = [p.to_dict() for p in self.repository.get_permissions()]
        if not permissions:
            return api_response("No permissions found", [], success=False)
        return api_response("Permissions retrieved successfully", permissions)
