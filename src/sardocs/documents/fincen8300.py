"""FinCEN Form 8300 (8300X batch) XML generation for SAR records."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping

from lxml import etree

from .errors import DocumentGenerationError
from .normalizer import NormalizedRecord, normalize
from .text import clean_xml_text

LOGGER = logging.getLogger(__name__)

FINCEN_NAMESPACE = "www.fincen.gov/base"
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"
SCHEMA_LOCATION = "www.fincen.gov/base https://www.fincen.gov/system/files/schema/base/EFL_8300XBatchSchema.xsd"
FORM_TYPE_CODE = "8300X"
PARTY_COUNT = 4
ACTIVITY_COUNT = 1

# ActivityPartyTypeCode values
RECEIVING_BUSINESS_CODE = "4"
CASH_PROVIDER_CODE = "16"
TRANSMITTER_CODE = "35"
CONTACT_CODE = "8"

DEFAULT_INSTITUTION_NAME = "Financial Institution"
CONTACT_LAST_NAME = "Compliance"
CONTACT_FIRST_NAME = "Officer"
CONTACT_TITLE = "Compliance Officer"
CONTACT_PHONE = "555-555-0100"
US_CURRENCY_INSTRUMENT_CODE = "35"

# Per-field length caps for free text.
NAME_MAX = 150
FIRST_NAME_MAX = 35
STREET_MAX = 100
CITY_MAX = 50
STATE_MAX = 3
ZIP_MAX = 9
IDENTIFIER_MAX = 25
PHONE_MAX = 16
NARRATIVE_MAX = 750

_NSMAP = {None: FINCEN_NAMESPACE, "xsi": XSI_NAMESPACE}


class SequenceCounter:
    """Issues the document-order ``SeqNum`` values for a single build."""

    def __init__(self, start: int = 1) -> None:
        self._next = start

    def next_value(self) -> int:
        value = self._next
        self._next += 1
        return value

    @property
    def issued(self) -> int:
        """int: Number of values handed out so far (when started at 1)."""

        return self._next - 1


class _BatchBuilder:
    """Assemble one 8300X batch tree; instances are not shared between builds."""

    def __init__(self, record: NormalizedRecord, record_id: str) -> None:
        self.record = record
        self.record_id = record_id
        self.sequence = SequenceCounter()

    def build(self) -> etree._Element:
        record = self.record
        root = etree.Element(
            _tag("EFilingBatchXML"),
            nsmap=_NSMAP,
        )
        root.set(etree.QName(XSI_NAMESPACE, "schemaLocation"), SCHEMA_LOCATION)
        root.set("TotalAmount", record.total_amount_text)
        root.set("PartyCount", str(PARTY_COUNT))
        root.set("ActivityCount", str(ACTIVITY_COUNT))
        _leaf(root, "FormTypeCode", FORM_TYPE_CODE)

        activity = self._sequenced(root, "Activity")
        _leaf(activity, "FilingDateText", record.filing_date_stamp)
        _leaf(activity, "SuspiciousTransactionIndicator", "Y")
        association = self._sequenced(activity, "ActivityAssociation")
        _leaf(association, "InitialReportIndicator", "Y")

        self._add_receiving_business(activity)
        self._add_cash_provider(activity)
        self._add_transmitter(activity)
        self._add_contact(activity)
        self._add_currency_activity(activity)
        self._add_narrative(activity)
        return root

    # ------------------------------------------------------------------
    # Parties
    # ------------------------------------------------------------------

    def _add_receiving_business(self, activity: etree._Element) -> None:
        self._add_institution_party(activity, RECEIVING_BUSINESS_CODE)

    def _add_transmitter(self, activity: etree._Element) -> None:
        # The filer is always the institution itself; no separate identity exists.
        self._add_institution_party(activity, TRANSMITTER_CODE)

    def _add_institution_party(self, activity: etree._Element, party_code: str) -> None:
        record = self.record
        party = self._party(activity, party_code, "O")
        name = self._sequenced(party, "PartyName")
        _leaf(name, "PartyNameTypeCode", "L")
        _leaf(name, "RawPartyFullName", clean_xml_text(record.institution_name or DEFAULT_INSTITUTION_NAME, NAME_MAX))
        self._institution_address(party)
        identification = self._sequenced(party, "PartyIdentification")
        _leaf(identification, "PartyIdentificationTypeCode", "2")
        _leaf(identification, "PartyIdentificationNumberText", clean_xml_text(record.institution_ein, IDENTIFIER_MAX))

    def _add_cash_provider(self, activity: etree._Element) -> None:
        record = self.record
        party = self._party(activity, CASH_PROVIDER_CODE, "I")
        name = self._sequenced(party, "PartyName")
        _leaf(name, "PartyNameTypeCode", "L")
        _leaf(name, "RawEntityIndividualLastName", clean_xml_text(record.suspect_surname or "Unknown", NAME_MAX))
        _leaf(name, "RawIndividualFirstName", clean_xml_text(record.suspect_first_name, FIRST_NAME_MAX))
        self._address(
            party,
            street=record.suspect_address,
            city=record.suspect_city,
            state=record.suspect_state,
            zip_code=record.suspect_zip,
        )
        phone = self._sequenced(party, "PhoneNumber")
        _leaf(phone, "PhoneNumberText", clean_xml_text(record.suspect_phone, PHONE_MAX))
        identification = self._sequenced(party, "PartyIdentification")
        _leaf(identification, "PartyIdentificationTypeCode", "1")
        # SSN/ITIN is never emitted.
        _leaf(identification, "PartyIdentificationNumberText", "")

    def _add_contact(self, activity: etree._Element) -> None:
        party = self._party(activity, CONTACT_CODE, "I")
        name = self._sequenced(party, "PartyName")
        _leaf(name, "PartyNameTypeCode", "L")
        _leaf(name, "RawEntityIndividualLastName", CONTACT_LAST_NAME)
        _leaf(name, "RawIndividualFirstName", CONTACT_FIRST_NAME)
        self._institution_address(party)
        phone = self._sequenced(party, "PhoneNumber")
        _leaf(phone, "PhoneNumberText", CONTACT_PHONE)
        occupation = self._sequenced(party, "PartyOccupationBusiness")
        _leaf(occupation, "OccupationBusinessText", CONTACT_TITLE)

    def _party(self, activity: etree._Element, party_code: str, party_type: str) -> etree._Element:
        party = self._sequenced(activity, "Party")
        _leaf(party, "ActivityPartyTypeCode", party_code)
        _leaf(party, "PartyTypeCode", party_type)
        return party

    def _institution_address(self, party: etree._Element) -> None:
        record = self.record
        self._address(
            party,
            street=record.institution_address,
            city=record.institution_city,
            state=record.institution_state,
            zip_code=record.institution_zip,
        )

    def _address(self, party: etree._Element, *, street: str, city: str, state: str, zip_code: str) -> None:
        address = self._sequenced(party, "Address")
        _leaf(address, "RawStreetAddress1Text", clean_xml_text(street, STREET_MAX))
        _leaf(address, "RawCityText", clean_xml_text(city, CITY_MAX))
        _leaf(address, "RawStateCodeText", clean_xml_text(state, STATE_MAX))
        _leaf(address, "RawZIPCode", clean_xml_text(zip_code, ZIP_MAX))
        _leaf(address, "RawCountryCodeText", "US")

    # ------------------------------------------------------------------
    # Activity blocks
    # ------------------------------------------------------------------

    def _add_currency_activity(self, activity: etree._Element) -> None:
        record = self.record
        amount_text = record.total_amount_text
        currency = self._sequenced(activity, "CurrencyTransactionActivity")
        _leaf(currency, "TotalCashInReceiveAmountText", amount_text)
        _leaf(currency, "TransactionDateText", record.transaction_date_stamp)
        self._detail(
            currency,
            type_code="7",
            amount=amount_text,
            description=clean_xml_text(record.activity_description or "Suspicious cash transaction"),
        )
        # The schema requires at least two detail entries.
        self._detail(
            currency,
            type_code="999",
            amount="0",
            description="Related to suspicious activity report",
        )

    def _detail(self, currency: etree._Element, *, type_code: str, amount: str, description: str) -> None:
        detail = self._sequenced(currency, "CurrencyTransactionActivityDetail")
        _leaf(detail, "CurrencyTransactionActivityDetailTypeCode", type_code)
        _leaf(detail, "DetailTransactionAmountText", amount)
        _leaf(detail, "DetailTransactionDescription", description)
        _leaf(detail, "InstrumentProductServiceTypeCode", US_CURRENCY_INSTRUMENT_CODE)

    def _add_narrative(self, activity: etree._Element) -> None:
        description = self.record.activity_description or "Cash transaction above reporting threshold"
        narrative_text = (
            f"This Form 8300 filing is based on suspicious activity identified in SAR report {self.record_id}. "
            f"Transaction details: {description}. "
            "Additional investigation may be warranted."
        )
        narrative = self._sequenced(activity, "ActivityNarrativeInformation")
        _leaf(narrative, "ActivityNarrativeSequenceNumber", "1")
        _leaf(narrative, "ActivityNarrativeText", clean_xml_text(narrative_text, NARRATIVE_MAX))

    def _sequenced(self, parent: etree._Element, name: str) -> etree._Element:
        element = etree.SubElement(parent, _tag(name))
        element.set("SeqNum", str(self.sequence.next_value()))
        return element


def build_fincen_8300(record: NormalizedRecord, record_id: str) -> bytes:
    """Serialize a normalized record into a UTF-8 Form 8300 batch document.

    Args:
        record: Output of :func:`sardocs.documents.normalizer.normalize`.
        record_id: Store identifier quoted in the narrative.

    Returns:
        Complete XML document including the declaration.

    Raises:
        DocumentGenerationError: If the tree cannot be assembled or serialized.
    """

    try:
        root = _BatchBuilder(record, record_id).build()
        return etree.tostring(root, xml_declaration=True, encoding="UTF-8", pretty_print=True)
    except Exception as exc:
        LOGGER.exception("Failed to build FinCEN 8300 XML for record %s", record_id)
        raise DocumentGenerationError(f"Failed to generate FinCEN 8300 XML: {exc}") from exc


def generate_fincen_8300_xml(raw: Mapping[str, Any], record_id: str, *, now: datetime | None = None) -> bytes:
    """Normalize a raw SAR record and return its Form 8300 XML bytes."""

    return build_fincen_8300(normalize(raw, record_id=record_id, now=now), record_id)


def _tag(name: str) -> str:
    return f"{{{FINCEN_NAMESPACE}}}{name}"


def _leaf(parent: etree._Element, name: str, text: str) -> etree._Element:
    element = etree.SubElement(parent, _tag(name))
    element.text = text
    return element


__all__ = [
    "FINCEN_NAMESPACE",
    "SequenceCounter",
    "build_fincen_8300",
    "generate_fincen_8300_xml",
]
