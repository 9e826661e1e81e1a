from datetime import datetime
from typing import Tuple, Dict, List, Any, Callable, Optional
from uuid import uuid4

from boto3.dynamodb.conditions import Key, Attr
from chalice import Response

from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http200, http201
from chalicelib.constants.substitute_keys import from_db
from chalicelib.utils import db as utils_db, exceptions, app as utils_app, auth as utils_auth, data as utils_data
from chalicelib.utils.data import substitute_keys
from chalicelib.utils.logger import logger


def now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


class EntityBase:
    pk = None
    sk = None
    record_type = ''
    not_found_message = 'Registro no encontrado'
    deleted_message = 'Registro eliminado correctamente'

    required_immutable_fields_validation = {}
    required_mutable_fields_validation = {}
    optional_fields_validation = {}
    # field -> coercer(value, field_name); applied to request payloads and db records alike
    fields_coercion: Dict[str, Callable] = {}
    # optional fields which are removed from the record when updated with an empty value
    removable_fields: List[str] = []
    # partition depends on a parent record, so single records are read through the id index
    lookup_by_id_index = False

    def __init__(self, id_, **kwargs):
        self.id_: str = id_
        self.request_data: Any[Dict, None] = kwargs.get('request_data')
        self.db_record: Dict = {}
        self.updated_fields: List[str] = []
        self.created_at: str = kwargs.get('created_at') or now_iso()
        self.updated_at: str = kwargs.get('updated_at') or self.created_at

    @classmethod
    def _coerce_fields(cls, values: Dict) -> Dict:
        coerced = {}
        for key, value in values.items():
            if key in cls.fields_coercion and value is not None and value != '':
                coerced[key] = cls.fields_coercion[key](value, key)
            else:
                coerced[key] = value
        return coerced

    def _get_pk_sk(self) -> Tuple[str, str]:
        """
        Should be re-implemented in each child class
        :return:
        partkey, sortkey of db item for child
        """
        return self.pk, self.sk

    def _get_db_item(self) -> Dict:
        return utils_db.get_db_item(*self._get_pk_sk())

    @classmethod
    def init_get_by_id(cls, id_):
        if cls.lookup_by_id_index:
            return cls._init_from_id_index(id_)
        instance = cls(id_=id_)
        try:
            db_item = instance._get_db_item()
        except exceptions.RecordNotFound:
            raise exceptions.RecordNotFound(cls.not_found_message)
        return cls(**db_item)

    @classmethod
    def _init_from_id_index(cls, id_):
        records = utils_db.query_items_paged(
            Key('id_').eq(id_),
            filter_expression=Attr('record_type').eq(cls.record_type),
            index_name=keys_structure.gsi_id_index
        )
        if not records:
            logger.warning(f"_init_from_id_index ::: {cls.record_type=} {id_=} not found")
            raise exceptions.RecordNotFound(cls.not_found_message)
        return cls(**records[0])

    @staticmethod
    def clean_payload(payload: Dict) -> Dict:
        """ Client can't choose ids, keys and timestamps """
        return {key: value for key, value in payload.items()
                if key not in ('id', 'id_', 'partkey', 'sortkey', 'record_type', 'created_at', 'updated_at')}

    @classmethod
    def parse_request_payload(cls, request) -> Dict:
        return utils_data.parse_raw_body(request)

    @classmethod
    @utils_auth.authenticate_class
    def init_request_create(cls, request):
        """
        admin operation
        """
        logger.info(f"init_request_create ::: started {cls.record_type=}")
        utils_auth.require_admin(request.auth_result)
        payload = cls.clean_payload(cls.parse_request_payload(request))
        return cls(id_=str(uuid4()), request_data=request.to_dict(), **payload)

    @classmethod
    @utils_auth.authenticate_class
    def init_request_update(cls, request, id_):
        """
        admin operation
        """
        logger.info(f"init_request_update ::: started {cls.record_type=} {id_=}")
        utils_auth.require_admin(request.auth_result)
        instance = cls.init_get_by_id(id_)
        instance.apply_update(cls.clean_payload(cls.parse_request_payload(request)))
        return instance

    @classmethod
    @utils_auth.authenticate_class
    def init_request_admin(cls, request, id_):
        """
        admin operation on an existing record
        """
        utils_auth.require_admin(request.auth_result)
        return cls.init_get_by_id(id_)

    @classmethod
    def query_all(cls, filter_expression=None, partkey: str = None, sortkey_prefix: str = None) -> List:
        key_condition = Key('partkey').eq(partkey or cls.pk)
        if sortkey_prefix:
            key_condition = key_condition & Key('sortkey').begins_with(sortkey_prefix)
        records = utils_db.query_items_paged(key_condition, filter_expression=filter_expression)
        return [cls(**record) for record in records if record.get('record_type') == cls.record_type]

    @classmethod
    def query_all_by_type(cls, filter_expression=None) -> List:
        """
        Records of this type from every partition, oldest first
        """
        records = utils_db.query_items_paged(
            Key('record_type').eq(cls.record_type),
            filter_expression=filter_expression,
            index_name=keys_structure.gsi_record_type_index
        )
        return [cls(**record) for record in records]

    def _to_dict(self) -> Dict:
        """
        Should be re-implemented in each child class
        :return:
        dict of item's attributes
        """
        return {
            'id_': self.id_,
        }

    def _init_db_record(self) -> None:
        """
        New DB record initialization
        :return:
        None
        """
        pk, sk = self._get_pk_sk()
        self.db_record = {
            'partkey': pk,
            'sortkey': sk,
            'record_type': self.record_type,
            **{key: value for key, value in self._to_dict().items() if value is not None}
        }

    def _validate_mandatory_fields(self):
        """
        Validates mandatory fields if all fields have correct type to put to db
        Raise ValidationException in case if a field is not valid
        """
        for key, validator_func in {
            **self.required_immutable_fields_validation,
            **self.required_mutable_fields_validation
        }.items():
            value = self.db_record.get(key)
            if value is None or value == '':
                message = f'El campo {key} es obligatorio'
                logger.warning(f"_validate_mandatory_fields ::: {message}")
                raise exceptions.ValidationException(message)
            if validator_func(value) is False:
                message = f'El campo {key} no es válido'
                logger.warning(f"_validate_mandatory_fields ::: {message}, {value=}")
                raise exceptions.ValidationException(message)

    def _validate_optional_fields(self):
        """
        Validates optional fields if all fields have correct type to put to db
        Raise ValidationException in case if a field is not valid
        """
        for key, validator_func in self.optional_fields_validation.items():
            value = self.db_record.get(key)
            if value is not None and validator_func(value) is False:
                message = f'El campo {key} no es válido'
                logger.warning(f"_validate_optional_fields ::: {message}, {value=}")
                raise exceptions.ValidationException(message)

    def _update_fields_whitelist(self) -> List:
        return [*self.required_mutable_fields_validation.keys(), *self.optional_fields_validation.keys()]

    def apply_update(self, payload: Dict) -> None:
        """
        Sets the whitelisted fields present in the payload, unknown fields are ignored
        """
        values = self._coerce_fields(payload)
        whitelist = self._update_fields_whitelist()
        for key, value in values.items():
            if key in whitelist and key not in ('updated_at',):
                setattr(self, key, value)
                self.updated_fields.append(key)

    def _get_validated_update_dict(self) -> Dict:
        """
        Validates only the fields which were sent for update
        Raise ValidationException in case if a field is not valid
        """
        update_dict = self._to_dict()
        clean_dict = {}
        for key in self.updated_fields:
            value = update_dict.get(key)
            if key in self.required_mutable_fields_validation:
                validator_func = self.required_mutable_fields_validation[key]
                if value is None or value == '' or validator_func(value) is False:
                    raise exceptions.ValidationException(f'El campo {key} no es válido')
            elif key in self.optional_fields_validation:
                if value not in (None, '') and self.optional_fields_validation[key](value) is False:
                    raise exceptions.ValidationException(f'El campo {key} no es válido')
            clean_dict[key] = value
        return clean_dict

    def _create_db_record(self) -> None:
        """
        Creates entity db record
        """
        self._init_db_record()
        self._validate_mandatory_fields()
        self._validate_optional_fields()
        utils_db.put_db_record(self.db_record)
        logger.info(f"_create_db_record ::: {self.record_type=} {self.id_=} {self.db_record.get('partkey')=} "
                    f"{self.db_record.get('sortkey')=} successfully created")

    def _update_db_record(self):
        """
        Updates entity db record
        """
        pk, sk = self._get_pk_sk()
        update_dict = self._get_validated_update_dict()
        if not update_dict:
            logger.info(f"_update_db_record ::: nothing to update for {self.record_type=} {self.id_=}")
            return
        self.updated_at = now_iso()
        update_dict['updated_at'] = self.updated_at
        utils_db.update_db_record(
            key={'partkey': pk, 'sortkey': sk},
            update_body=update_dict,
            allowed_attrs_to_update=[*self._update_fields_whitelist(), 'updated_at'],
            allowed_attrs_to_delete=self.removable_fields
        )
        logger.info(f"_update_db_record ::: {self.record_type=} "
                    f"{self.id_=} {pk=} {sk=} successfully updated fields={self.updated_fields}")

    def _delete_db_record(self):
        utils_db.delete_db_record(*self._get_pk_sk())
        logger.info(f"_delete_db_record ::: {self.record_type=} {self.id_=} successfully deleted")

    def _to_ui(self) -> Dict:
        item = self._to_dict()
        substitute_keys(dict_to_process=item, base_keys=from_db)
        return item

    @utils_app.log_start_finish
    def endpoint_get_by_id(self) -> Response:
        return Response(status_code=http200, body=self._to_ui())

    @utils_app.log_start_finish
    def endpoint_create(self) -> Response:
        self._create_db_record()
        return Response(status_code=http201, body=self._to_ui())

    @utils_app.log_start_finish
    def endpoint_update(self, payload: Optional[Dict] = None) -> Response:
        if payload is not None:
            self.apply_update(payload)
        self._update_db_record()
        return Response(status_code=http200, body=self._to_ui())

    @utils_app.log_start_finish
    def endpoint_delete(self) -> Response:
        self._delete_db_record()
        return Response(status_code=http200, body={'message': self.deleted_message, 'id': self.id_})
