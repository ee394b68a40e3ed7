"""
Transactions API endpoints for the risk review dashboard.
"""

from flask import Blueprint, request
from typing import Dict, Any, List, Optional
import logging

from riskguard.exceptions import StorageError
from riskguard.ingestion.transaction_producer import TransactionProducer
from riskguard.models.transaction import Transaction
from riskguard.processing.transaction_processor import TransactionProcessor
from riskguard.storage.retry import call_with_retry

from .responses import error_response, get_service, parse_limit, success_response

logger = logging.getLogger(__name__)

transactions_bp = Blueprint("transactions", __name__)

MAX_TRANSACTION_LIMIT = 5000


class PublishError(Exception):
    """Raised when a transaction could not be handed to Kafka."""


class TransactionsAPI:
    """API operations for submitting and browsing transactions."""

    def __init__(
        self,
        processor: TransactionProcessor,
        producer: Optional[TransactionProducer] = None,
    ):
        """Initialize the transactions API."""
        self.processor = processor
        self.producer = producer

    def submit_transaction(self, payload: Any) -> Dict[str, Any]:
        """Publish a transaction to Kafka, or score it inline without a producer."""
        if not isinstance(payload, dict):
            raise ValueError("Transaction body must be a JSON object")

        if self.producer is not None:
            if not self.producer.send_transaction(payload):
                raise PublishError("Failed to publish transaction")
            return {"queued": True, "transactionId": Transaction.extract_id(payload)}

        result = self.processor.process_transaction(payload)
        if result is None:
            raise ValueError("Transaction id is required")
        return result.to_dict()

    def get_transactions(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Get recent transaction records, newest first."""
        records = call_with_retry(
            self.processor.stores.transactions.list_recent,
            limit,
            policy=self.processor.retry_policy,
            description="recent transactions",
        )
        return [record.to_dict() for record in records]

    def get_transaction(self, transaction_id: str) -> Optional[Dict[str, Any]]:
        """Get a specific transaction record by ID."""
        record = call_with_retry(
            self.processor.stores.transactions.get,
            transaction_id,
            policy=self.processor.retry_policy,
            description="transaction get",
        )
        return record.to_dict() if record else None


def _transactions_api() -> TransactionsAPI:
    return TransactionsAPI(get_service("processor"), get_service("producer"))


@transactions_bp.route("/api/transactions", methods=["POST"])
def submit_transaction():
    """Submit transaction endpoint."""
    payload = request.get_json(silent=True)
    try:
        result = _transactions_api().submit_transaction(payload)
        status = 202 if result.get("queued") else 200
        return success_response(result, status)
    except ValueError as e:
        # InvalidTransactionError is a ValueError
        return error_response(str(e), 400)
    except (PublishError, StorageError) as e:
        logger.error(f"Error in submit transaction endpoint: {e}")
        return error_response(str(e), 503)


@transactions_bp.route("/api/transactions", methods=["GET"])
def get_transactions():
    """Get recent transactions endpoint."""
    try:
        limit = parse_limit(request.args.get("limit"), 100, MAX_TRANSACTION_LIMIT)
        return success_response(_transactions_api().get_transactions(limit))
    except ValueError as e:
        return error_response(str(e), 400)
    except StorageError as e:
        logger.error(f"Error in get transactions endpoint: {e}")
        return error_response(str(e), 503)


@transactions_bp.route("/api/transactions/<transaction_id>", methods=["GET"])
def get_transaction(transaction_id):
    """Get specific transaction endpoint."""
    try:
        transaction = _transactions_api().get_transaction(transaction_id)
    except StorageError as e:
        logger.error(f"Error in get transaction endpoint: {e}")
        return error_response(str(e), 503)

    if transaction:
        return success_response(transaction)
    return error_response("Transaction not found", 404)
