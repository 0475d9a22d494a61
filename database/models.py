import uuid

from peewee import (
    Model,
    CharField,
    DateField,
    DateTimeField,
    DecimalField,
    ForeignKeyField,
    IntegerField,
    TextField,
    UUIDField,
)

from database.db import db
from utils.time_utils import utc_now


class BaseModel(Model):
    class Meta:
        database = db


class TimestampedModel(BaseModel):
    id = UUIDField(primary_key=True, default=uuid.uuid4)
    created_at = DateTimeField(default=utc_now)
    updated_at = DateTimeField(default=utc_now)

    def touch(self) -> None:
        self.updated_at = utc_now()


class SoftDeleteModel(TimestampedModel):
    """Base with soft-delete support via ``deleted_at`` timestamp."""

    deleted_at = DateTimeField(null=True, index=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self) -> None:
        """Mark instance as deleted without physical removal."""
        self.deleted_at = utc_now()
        self.save()

    def restore(self) -> None:
        self.deleted_at = None
        self.touch()
        self.save()

    @classmethod
    def active(cls):
        return cls.select().where(cls.deleted_at.is_null(True))


class CustomerType:
    COMPANY = "company"
    PERSONAL = "personal"

    ALL = (COMPANY, PERSONAL)


class InvoiceMethod:
    MAIL = "mail"
    EMAIL = "email"

    ALL = (MAIL, EMAIL)


class Customer(SoftDeleteModel):
    customer_type = CharField(default=CustomerType.PERSONAL)
    company_name = CharField(null=True)
    name = CharField(index=True)
    name_kana = CharField(null=True)
    customer_class = CharField(null=True, column_name="class")
    birth_date = DateField(null=True)
    postal_code = CharField(null=True)
    prefecture = CharField(null=True)
    city = CharField(null=True)
    address = CharField(null=True)
    phone = CharField(null=True)
    email = CharField(null=True)
    contract_start_date = DateField(null=True)
    invoice_method = CharField(null=True)
    payment_terms = CharField(null=True)
    memo = TextField(null=True)

    def __str__(self) -> str:
        return self.name


class Tag(BaseModel):
    id = UUIDField(primary_key=True, default=uuid.uuid4)
    name = CharField(max_length=50, unique=True)
    created_at = DateTimeField(default=utc_now)

    def __str__(self) -> str:
        return self.name


class CustomerTag(BaseModel):
    customer = ForeignKeyField(Customer, backref="tag_links", on_delete="CASCADE")
    tag = ForeignKeyField(Tag, backref="customer_links", on_delete="CASCADE")
    created_at = DateTimeField(default=utc_now)

    class Meta:
        indexes = ((("customer", "tag"), True),)


class Product(SoftDeleteModel):
    name = CharField(max_length=100, index=True)
    default_price = IntegerField(default=0)
    unit = CharField(max_length=50, default="個")
    description = TextField(null=True)


class Invoice(SoftDeleteModel):
    invoice_number = CharField(unique=True)
    issue_date = DateField()
    customer = ForeignKeyField(Customer, null=True, backref="invoices", on_delete="SET NULL")
    billing_name = CharField()
    billing_address = TextField(null=True)
    billing_honorific = CharField(default="様")
    total_amount = IntegerField(default=0)

    def __str__(self) -> str:
        return self.invoice_number


class InvoiceItem(SoftDeleteModel):
    invoice = ForeignKeyField(Invoice, backref="items", on_delete="CASCADE")
    product = ForeignKeyField(Product, null=True, backref="invoice_items", on_delete="SET NULL")
    item_name = CharField()
    quantity = DecimalField(max_digits=12, decimal_places=3, auto_round=True)
    unit = CharField(default="個")
    unit_price = IntegerField(default=0)
    amount = IntegerField(default=0)
    description = TextField(null=True)
    display_order = IntegerField(default=0)


class InvoiceSequence(BaseModel):
    year = IntegerField(unique=True)
    last_number = IntegerField(default=0)


class CompanySettings(TimestampedModel):
    company_name = CharField(max_length=255)
    postal_code = CharField(max_length=20, null=True)
    address = TextField()
    phone = CharField(max_length=50)
    email = CharField(max_length=255, null=True)
    fax = CharField(max_length=50, null=True)
    bank_info = TextField(null=True)  # JSON-объект с реквизитами банка
