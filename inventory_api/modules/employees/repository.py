from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from inventory_api.shared.database.models import Employee, Permission, User


class EmployeeRepository:

    def __init__(self, db: Session):
        self.db = db

    # ===== EMPLEADOS =====

    def _with_permissions(self):
        return self.db.query(Employee, Permission).outerjoin(
            Permission, Employee.permissions == Permission.id
        )

    def get_all(self) -> List[Tuple[Employee, Optional[Permission]]]:
        return self._with_permissions().all()

    def get_by_user_id(self, user_id: str) -> List[Tuple[Employee, Optional[Permission]]]:
        return self._with_permissions().filter(Employee.user_id == user_id).all()

    def get_by_warehouse(self, warehouse_id: str) -> List[Tuple[Employee, Optional[Permission]]]:
        return self._with_permissions().filter(Employee.warehouse_id == warehouse_id).all()

    def get_by_id(self, employee_id: str) -> Optional[Tuple[Employee, Optional[Permission]]]:
        return self._with_permissions().filter(Employee.id == employee_id).first()

    def create(self, employee_data: dict) -> Employee:
        try:
            employee = Employee(**employee_data)
            self.db.add(employee)
            self.db.commit()
            self.db.refresh(employee)
            return employee
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    # ===== USUARIOS =====

    def get_users(self) -> List[User]:
        return self.db.query(User).order_by(User.created_at).all()

    def get_user(self, user_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def update_user(self, user: User, update_data: dict) -> User:
        try:
            for key, value in update_data.items():
                setattr(user, key, value)
            self.db.commit()
            self.db.refresh(user)
            return user
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    # ===== PERMISOS =====

    def get_permissions(self) -> List[Permission]:
        return self.db.query(Permission).all()
