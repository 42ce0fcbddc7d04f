"""
Core REST API
Message catalogue for API responses.

Usage:
    from coreapi.core.messages import t

    t("required", label="name")          # "name cannot be blank."
    t("createRecordSuccess", lang="id")  # Indonesian text

Inside a request the language comes from ``Accept-Language`` when it names a
configured language; outside a request (CLI, background jobs) the app's
``DEFAULT_LANGUAGE`` is used, or English without an app context.
"""

from flask import current_app, has_app_context, has_request_context, request

DEFAULT_LANGUAGE = "en"

MESSAGES = {
    "en": {
        # General
        "success": "Success.",
        "badRequest": "Bad Request.",
        "emptyParams": 'At least one input must be provided except "id" to update data.',
        "dataNotFound": "Data not found.",
        "exceptionOccured": "An exception has occurred.",
        "unauthorizedAccess": "Unauthorized access.",
        "serverError": "Server error.",
        "methodNotAllowed": "Method not allowed.",
        "lockVersionOutdated": "The data being updated is outdated. Please refresh the page and try again.",
        "unknownError": "An unknown error occurred.",
        "mirrorUnavailable": "Document store is not available.",
        # Records
        "createRecordSuccess": "Data has been saved successfully.",
        "createRecordFailed": "Failed to save data.",
        "updateRecordSuccess": "Data has been updated successfully.",
        "updateRecordFailed": "Failed to update data.",
        "deleteRecordSuccess": "Data has been deleted successfully.",
        "deleteRecordFailed": "Failed to delete data.",
        "noRecordDeleted": "Failed, Record already deleted.",
        "noRecordUpdated": "Failed, no record updated.",
        # Field validation
        "required": "{label} cannot be blank.",
        "integer": "{label} must be an integer.",
        "number": "{label} must be a number.",
        "string": "{label} must be a string.",
        "stringTooLong": "{label} should contain at most {value} characters.",
        "object": "{label} must be an object.",
        "validationFailed": "Field validation failed.",
        "invalidField": "Field {label} not a valid request parameter.",
        "integerNoZero": "{label} must be an integer and greater than 0.",
        "invalidStatusTransition": "Invalid status transition change, it should not be changed.",
        "valueNotInList": "{label} must be one of the following values: {value}.",
        "invalidSortField": "Cannot sort by {label}.",
        "invalidDate": "{label} must be a date (YYYY-MM-DD) or a date range (start,end).",
        # Pagination
        "pageMustBeGreaterThanZero": "Page must be greater than 0.",
        # Status
        "disallowedStatusUpdate": "Cannot change status because data already {value}.",
        "cannotChangeStatus": "Cannot change status from {value} to {newValue}.",
        "deletedStatusChanged": (
            "You do not have permission to change the status from {value} to another status. "
            "Admin rights are required."
        ),
        # Privileges
        "superadminOnly": "You do not have permission to perform this action.",
        "updatePermission": (
            "You do not have permission to update the {label} of this {tableName} "
            "because it is referenced in other data."
        ),
    },
    "id": {
        "success": "Berhasil.",
        "badRequest": "Permintaan tidak valid.",
        "emptyParams": 'Minimal satu input harus diisi selain "id" untuk memperbarui data.',
        "dataNotFound": "Data tidak ditemukan.",
        "exceptionOccured": "Terjadi pengecualian.",
        "unauthorizedAccess": "Akses tidak diizinkan.",
        "serverError": "Kesalahan server.",
        "methodNotAllowed": "Metode tidak diizinkan.",
        "lockVersionOutdated": "Data yang diperbarui sudah usang. Silakan muat ulang halaman dan coba lagi.",
        "unknownError": "Terjadi kesalahan yang tidak diketahui.",
        "mirrorUnavailable": "Penyimpanan dokumen tidak tersedia.",
        "createRecordSuccess": "Data berhasil disimpan.",
        "createRecordFailed": "Gagal menyimpan data.",
        "updateRecordSuccess": "Data berhasil diperbarui.",
        "updateRecordFailed": "Gagal memperbarui data.",
        "deleteRecordSuccess": "Data berhasil dihapus.",
        "deleteRecordFailed": "Gagal menghapus data.",
        "noRecordDeleted": "Gagal, data sudah dihapus.",
        "noRecordUpdated": "Gagal, tidak ada data yang diperbarui.",
        "required": "{label} tidak boleh kosong.",
        "integer": "{label} harus berupa bilangan bulat.",
        "number": "{label} harus berupa angka.",
        "string": "{label} harus berupa teks.",
        "stringTooLong": "{label} maksimal {value} karakter.",
        "object": "{label} harus berupa objek.",
        "validationFailed": "Validasi field gagal.",
        "invalidField": "Field {label} bukan parameter yang valid.",
        "integerNoZero": "{label} harus berupa bilangan bulat dan lebih dari 0.",
        "invalidStatusTransition": "Perubahan status tidak valid.",
        "valueNotInList": "{label} harus salah satu dari nilai berikut: {value}.",
        "invalidSortField": "Tidak dapat mengurutkan berdasarkan {label}.",
        "invalidDate": "{label} harus berupa tanggal (YYYY-MM-DD) atau rentang tanggal (awal,akhir).",
        "pageMustBeGreaterThanZero": "Halaman harus lebih dari 0.",
        "disallowedStatusUpdate": "Tidak dapat mengubah status karena data sudah {value}.",
        "cannotChangeStatus": "Tidak dapat mengubah status dari {value} menjadi {newValue}.",
        "deletedStatusChanged": (
            "Anda tidak memiliki izin untuk mengubah status dari {value} ke status lain. "
            "Diperlukan hak admin."
        ),
        "superadminOnly": "Anda tidak memiliki izin untuk melakukan tindakan ini.",
        "updatePermission": (
            "Anda tidak memiliki izin untuk memperbarui {label} pada {tableName} ini "
            "karena direferensikan oleh data lain."
        ),
    },
}


class _KeepMissing(dict):
    """format_map helper: leaves unknown placeholders in place."""

    def __missing__(self, key):
        return "{" + key + "}"


def current_language() -> str:
    """Resolve the response language for the active context."""
    if not has_app_context():
        return DEFAULT_LANGUAGE
    default = current_app.config.get("DEFAULT_LANGUAGE", DEFAULT_LANGUAGE)
    if has_request_context():
        supported = current_app.config.get("LANGUAGES", tuple(MESSAGES))
        return request.accept_languages.best_match(supported) or default
    return default


def t(key: str, lang: str | None = None, **params) -> str:
    """Translate ``key`` and interpolate ``params``.

    Falls back to English, then to the key itself.
    """
    lang = lang or current_language()
    template = MESSAGES.get(lang, {}).get(key) or MESSAGES[DEFAULT_LANGUAGE].get(key, key)
    if not params:
        return template
    return template.format_map(_KeepMissing({k: str(v) for k, v in params.items()}))
