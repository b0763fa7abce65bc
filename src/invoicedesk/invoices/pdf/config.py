import os
from typing import Optional
from pydantic import BaseModel, Field


class PdfConfig(BaseModel):
    company_name: str = Field(default_factory=lambda: os.getenv("COMPANY_NAME", "Settlo Tech Solutions"))
    company_address: str = Field(
        default_factory=lambda: os.getenv("COMPANY_ADDRESS", "121 Akhil Plaza, Perundurai Road, Erode"))
    company_website: str = Field(default_factory=lambda: os.getenv("COMPANY_WEBSITE", "www.settlo.com"))
    company_phone: str = Field(default_factory=lambda: os.getenv("COMPANY_PHONE", "+91 9003633356"))
    signatory: str = Field(default_factory=lambda: os.getenv("INVOICE_SIGNATORY", "Settlo Team Manager"))
    currency_symbol: str = Field(default_factory=lambda: os.getenv("CURRENCY_SYMBOL", "Rs."))

    # Local path or http(s) URL; a placeholder is drawn when missing or unreachable
    logo: Optional[str] = Field(default_factory=lambda: os.getenv("INVOICE_LOGO") or None)
    signature: Optional[str] = Field(default_factory=lambda: os.getenv("INVOICE_SIGNATURE") or None)

    asset_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("PDF_ASSET_TIMEOUT", "5")), gt=0)
    render_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("PDF_RENDER_TIMEOUT", "30")), gt=0)
