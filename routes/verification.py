"""
Verification request API routes for the Lecturer Attendance Management System
"""

from flask import Blueprint, jsonify, request

from routes.auth import current_user, json_body, login_required
from services.verification_service import VerificationService
from utils.errors import ValidationError

verification_bp = Blueprint('verification', __name__)


@verification_bp.route('/verification-requests', methods=['GET'])
@login_required()
def list_requests():
    requests = VerificationService.list_requests(current_user(), request.args.get('status'))
    return jsonify({'verification_requests': requests})


@verification_bp.route('/verification-requests', methods=['POST'])
@login_required()
def create_request():
    verification = VerificationService.create_request(current_user(), json_body())
    return jsonify({'message': 'Verification request created successfully',
                    'verification_request': verification.to_dict()}), 201


@verification_bp.route('/verification-requests', methods=['PUT'])
@login_required()
def update_request():
    data = json_body()
    request_id = data.get('verification_request_id')
    if not request_id:
        raise ValidationError("verification_request_id is required")
    verification = VerificationService.update_request(
        current_user(), request_id, data.get('status'),
        review_notes=data.get('review_notes'), escalate=bool(data.get('escalate', False)),
    )
    return jsonify({'message': f'Verification request {verification.status}',
                    'verification_request': verification.to_dict()})
