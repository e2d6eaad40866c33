# routes/images.py

import logging

from flask import Blueprint, Response, jsonify, request

from services.dispatcher import OPERATIONS, OperationRequest, UploadedAsset, dispatch
from services.errors import ImageOperationError

images_bp = Blueprint('images', __name__)


def _read_uploads(fields):
    assets = {}
    for name in fields:
        file = request.files.get(name)
        if file is None:
            continue
        assets[name] = UploadedAsset(
            data=file.read(),
            mimetype=file.mimetype or "application/octet-stream",
            filename=file.filename or "",
        )
    return assets


def _make_view(operation):
    def view():
        op_request = OperationRequest(
            operation=operation.name,
            params=request.form,
            assets=_read_uploads(operation.fields),
        )
        try:
            result = dispatch(op_request)
        except ImageOperationError as e:
            logging.error(f"{operation.name} failed: {e.message}")
            raise

        if result.is_json:
            return jsonify(result.payload), 200
        return Response(result.data, status=200, content_type=result.content_type)

    view.__name__ = f"{operation.name}_image"
    return view


# === Register one POST endpoint per operation via function mapping ===
for _operation in OPERATIONS.values():
    images_bp.add_url_rule(f"/{_operation.name}", view_func=_make_view(_operation), methods=['POST'])
