from __future__ import annotations

from dataclasses import dataclass, field

from . import schemas
from .config import BusinessConfig
from .repositories.counter_repo import CounterRepository
from .repositories.customer_repo import CustomerRepository
from .repositories.employee_repo import EmployeeRepository
from .repositories.expense_repo import ExpenseRepository
from .repositories.product_repo import ProductRepository
from .repositories.salary_repo import SalaryRepository
from .repositories.service_repo import ServiceRepository
from .repositories.vehicle_repo import VehicleRepository
from .repositories.warranty_repo import WarrantyRepository
from .repositories.work_order_line_repo import WorkOrderLineRepository
from .repositories.work_order_repo import WorkOrderRepository
from .services.auth import AdminGate
from .services.dashboard_service import DashboardService
from .services.entity_service import CustomerService, EntityService, SalaryService, VehicleService
from .services.sequence import SequenceGenerator
from .services.work_order_service import WorkOrderService


@dataclass
class Repositories:
    customer: CustomerRepository = field(default_factory=CustomerRepository)
    vehicle: VehicleRepository = field(default_factory=VehicleRepository)
    service: ServiceRepository = field(default_factory=ServiceRepository)
    product: ProductRepository = field(default_factory=ProductRepository)
    employee: EmployeeRepository = field(default_factory=EmployeeRepository)
    salary: SalaryRepository = field(default_factory=SalaryRepository)
    expense: ExpenseRepository = field(default_factory=ExpenseRepository)
    warranty: WarrantyRepository = field(default_factory=WarrantyRepository)
    counter: CounterRepository = field(default_factory=CounterRepository)
    work_order: WorkOrderRepository = field(default_factory=WorkOrderRepository)
    work_order_line: WorkOrderLineRepository = field(default_factory=WorkOrderLineRepository)


@dataclass
class Services:
    work_orders: WorkOrderService
    dashboard: DashboardService
    gate: AdminGate
    entities: dict[str, EntityService]


def build_services(repos: Repositories, business: BusinessConfig) -> Services:
    sequence = SequenceGenerator(
        repos.counter,
        name=business.counter_name,
        prefix=business.invoice_prefix,
        width=business.serial_width,
    )
    work_orders = WorkOrderService(
        customer_repo=repos.customer,
        vehicle_repo=repos.vehicle,
        service_repo=repos.service,
        product_repo=repos.product,
        order_repo=repos.work_order,
        line_repo=repos.work_order_line,
        sequence=sequence,
        free_service_threshold=business.free_service_threshold,
    )
    dashboard = DashboardService(
        order_repo=repos.work_order,
        line_repo=repos.work_order_line,
        expense_repo=repos.expense,
        salary_repo=repos.salary,
        product_repo=repos.product,
        customer_repo=repos.customer,
        employee_repo=repos.employee,
    )
    entities: dict[str, EntityService] = {
        "customer": CustomerService("customer", repos.customer, schemas.Customer),
        "vehicle": VehicleService(
            "vehicle",
            repos.vehicle,
            schemas.Vehicle,
            references={"customer_id": repos.customer},
            free_service_threshold=business.free_service_threshold,
        ),
        "service": EntityService("service", repos.service, schemas.Service),
        "product": EntityService("product", repos.product, schemas.Product),
        "employee": EntityService("employee", repos.employee, schemas.Employee),
        "salary": SalaryService("salary", repos.salary, schemas.Salary, references={"employee_id": repos.employee}),
        "expense": EntityService("expense", repos.expense, schemas.Expense),
        "warranty": EntityService("warranty", repos.warranty, schemas.Warranty),
    }
    return Services(
        work_orders=work_orders,
        dashboard=dashboard,
        gate=AdminGate(business.admin_password),
        entities=entities,
    )
