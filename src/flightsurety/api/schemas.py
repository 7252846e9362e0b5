from __future__ import annotations

"""Pydantic request schemas for the HTTP API.

These exist only for HTTP input validation; the runtime works on plain values.
"""

from typing import Optional

from pydantic import BaseModel, Field


class AirlineRegisterRequest(BaseModel):
    airline: str = Field(..., min_length=1, description="Candidate airline address")
    by: str = Field(..., min_length=1, description="Participating airline admitting or voting")


class AirlineFundRequest(BaseModel):
    airline: str = Field(..., min_length=1)
    amount: int = Field(..., ge=0, description="Funding amount in wei")


class FlightRegisterRequest(BaseModel):
    airline: str = Field(..., min_length=1)
    flight: str = Field(..., min_length=1)
    timestamp: int = Field(..., ge=0, description="Scheduled departure, unix seconds")


class StatusRequestBody(BaseModel):
    airline: str = Field(..., min_length=1)
    flight: str = Field(..., min_length=1)
    timestamp: Optional[int] = Field(default=None, ge=0, description="Defaults to the flight's scheduled time")


class OracleRegisterRequest(BaseModel):
    identity: str = Field(..., min_length=1)
    fee_paid: int = Field(..., ge=0, description="Fee in wei, as confirmed by the payment layer")
    pubkey: Optional[str] = Field(default=None, description="Ed25519 public key (hex) for signed responses")


class OracleResponseRequest(BaseModel):
    identity: str = Field(..., min_length=1)
    index: int = Field(..., ge=0)
    airline: str = Field(..., min_length=1)
    flight: str = Field(..., min_length=1)
    timestamp: int = Field(..., ge=0)
    status_code: int = Field(..., ge=0)
    sig: Optional[str] = Field(default=None, description="Signature over the canonical response message")


class OperationalRequest(BaseModel):
    operational: bool
    caller: str = Field(..., min_length=1)
