from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SelectOption(BaseModel):
    value: str
    text: str


class CaseDetails(CamelModel):
    case_info: str = Field(alias="caseInfo")
    parties: str = ""
    listing_date: str = Field(default="", alias="listingDate")
    case_no: Optional[str] = Field(default=None, alias="caseNo")
    status: Optional[str] = None
    petitioner: Optional[str] = None
    respondent: Optional[str] = None
    next_listing_date: Optional[str] = Field(default=None, alias="nextListingDate")
    court_no: Optional[str] = Field(default=None, alias="courtNo")


class OrderEntry(CamelModel):
    sno: Union[int, str]
    case_no: str = Field(default="", alias="caseNo")
    date: str = ""
    pdf_url: str = Field(alias="pdfUrl")


class SearchCaseRequest(CamelModel):
    # Optional so the route can answer with its own 400 message
    case_type: Optional[Union[str, int]] = Field(default=None, alias="caseType")
    case_number: Optional[Union[str, int]] = Field(default=None, alias="caseNumber")
    year: Optional[Union[str, int]] = None


class DownloadMergeRequest(CamelModel):
    orders: Optional[List[OrderEntry]] = None
    case_info: Optional[str] = Field(default=None, alias="caseInfo")
    include_index: bool = Field(default=False, alias="includeIndex")
