import functools
import os
from random import uniform
from time import sleep
from typing import List, Dict

import boto3 as boto3
from boto3.dynamodb.conditions import ConditionExpressionBuilder
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from chalicelib.constants.constants import MAX_TRANSACTION_ITEMS
from chalicelib.utils import exceptions
from chalicelib.utils.boto_clients import aws_config_ddb
from chalicelib.utils.logger import logger, log_exception

# For safe db operations
RETRY_EXCEPTIONS = ('ProvisionedThroughputExceededException', 'ThrottlingException')
need_return_capacity = ('put_item', 'get_item', 'update_item', 'delete_item')

_DB = None


def exp_db_backoff(func):
    """
        should be used for any atomic
        get/put item in the code
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger.debug(f'{func.__name__}:: args={args}, kwargs={kwargs}')
        max_retries = 8
        timeout_seed = uniform(0.1, 0.99)

        if func.__name__ not in need_return_capacity:
            raise RuntimeError("This decorator only for DynamoDB methods")

        for retries in range(max_retries):
            try:
                kwargs.update({'ReturnConsumedCapacity': 'TOTAL'})
                result = func(*args, **kwargs)
                logger.info(f'{func.__name__}:: SUCCESS')

                return result

            except ClientError as e:
                if e.response.get('Error', {}).get('Code') not in RETRY_EXCEPTIONS:
                    log_exception(e, msg=f'Got exception while trying to {func.__name__}: ')
                    raise
                logger.warning(f'{func.__name__}:: throttled, retry number {retries + 1}')
                sleep(min(timeout_seed * 2 ** retries, 10))

        raise exceptions.NumberOfRetriesExceeded(
            f"MaxNumber={max_retries} of DB retries has exceeded"
        )

    return wrapper


def get_table(table_name: str) -> boto3.session.Session.resource:
    if os.environ.get('ENDPOINT_URL'):
        table = boto3.resource('dynamodb', endpoint_url=os.environ.get('ENDPOINT_URL'),
                               config=aws_config_ddb).Table(table_name)
    else:
        table = boto3.resource('dynamodb', config=aws_config_ddb).Table(table_name)

    table.put_item = exp_db_backoff(table.put_item)
    table.get_item = exp_db_backoff(table.get_item)
    table.update_item = exp_db_backoff(table.update_item)
    table.delete_item = exp_db_backoff(table.delete_item)

    return table


def get_gen_table():
    global _DB
    if _DB is None:
        _DB = get_table(os.environ.get('GEN_TABLE_NAME'))
    return _DB


def put_db_record(item: dict, table=get_gen_table):
    table().put_item(Item=item)


def update_db_record(key: dict, update_body: dict, allowed_attrs_to_update: list,
                     allowed_attrs_to_delete: list, table=get_gen_table):
    set_expr, expr_attr_values, remove_expr, set_attr_names, remove_attr_names = generate_update_expression(
        update_body=update_body,
        allowed_attrs_to_update=allowed_attrs_to_update,
        allowed_attrs_to_delete=allowed_attrs_to_delete
    )
    update_item_dict = {"Key": key, "ReturnValues": "ALL_NEW", }

    set_response = None
    if set_expr:
        set_item_dict = {
            **update_item_dict,
            "UpdateExpression": set_expr,
            "ExpressionAttributeNames": set_attr_names,
            "ExpressionAttributeValues": expr_attr_values
        }
        set_response = table().update_item(**set_item_dict)

    remove_response = None
    if remove_expr:
        remove_item_dict = {
            **update_item_dict,
            "UpdateExpression": remove_expr,
            "ExpressionAttributeNames": remove_attr_names,
        }
        remove_response = table().update_item(**remove_item_dict)

    return set_response, remove_response


def generate_update_expression(update_body: dict, allowed_attrs_to_update: list, allowed_attrs_to_delete: list):
    """
    Generate expressions to update and delete attributes.
    if a key of update_body is empty - the attribute is deleted, else - attribute is updated.
    Attribute names always go through placeholders, so reserved words (name, status, capacity...) are safe
    """
    expr_attr_values = {}
    set_attr_names = {}
    remove_attr_names = {}
    set_parts = []
    remove_parts = []
    return_value = [None, None, None, set_attr_names, remove_attr_names]
    for field in allowed_attrs_to_update:
        if field not in update_body:
            continue
        field_value = update_body.get(field)
        if field_value in ['', [], {}, None] and field in allowed_attrs_to_delete:
            remove_attr_names[f'#{field}'] = field
            remove_parts.append(f'#{field}')
        elif field_value is not None:
            set_attr_names[f'#{field}'] = field
            expr_attr_values[f':{field}'] = field_value
            set_parts.append(f'#{field} = :{field}')

    if set_parts:
        return_value[0] = 'SET ' + ', '.join(set_parts)
        return_value[1] = expr_attr_values

    if remove_parts:
        return_value[2] = 'REMOVE ' + ', '.join(remove_parts)

    return return_value


def get_db_item(partkey, sortkey, table=get_gen_table):
    result = table().get_item(
        Key={
            'partkey': partkey,
            'sortkey': sortkey
        }
    )

    if result.__contains__('Item'):
        return result['Item']
    else:
        logger.warning(f"get_db_item ::: record partkey={partkey} sortkey={sortkey} not found")
        raise exceptions.RecordNotFound(f'record partkey={partkey} sortkey={sortkey} not found')


def find_db_item(partkey, sortkey, table=get_gen_table):
    try:
        return get_db_item(partkey, sortkey, table=table)
    except exceptions.RecordNotFound:
        return None


def delete_db_record(partkey, sortkey, table=get_gen_table):
    table().delete_item(Key={'partkey': partkey, 'sortkey': sortkey})
    logger.info(f"delete_db_record ::: partkey={partkey} sortkey={sortkey} deleted")


def query_items_paginated(
        key_condition_expression,
        filter_expression=None,
        projection_expression=None,
        table=get_gen_table,
        index_name=None,
        expr_attr_names=None,
        limit=None,
        start_key=None
):
    kwargs = {'KeyConditionExpression': key_condition_expression}
    if filter_expression:
        kwargs.update({'FilterExpression': filter_expression})

    if projection_expression:
        kwargs.update({'ProjectionExpression': projection_expression})

    if expr_attr_names:
        kwargs.update({'ExpressionAttributeNames': expr_attr_names})

    if limit:
        kwargs.update({'Limit': int(limit)})

    if index_name:
        kwargs.update({'IndexName': index_name})

    if start_key:
        kwargs.update({'ExclusiveStartKey': start_key})

    resp = table().query(**kwargs)
    return resp['Items'], resp.get('LastEvaluatedKey')


def query_items_paged(key_condition_expression, filter_expression=None, projection_expression=None,
                      table=get_gen_table, index_name=None, expr_attr_names=None):
    """ This method shall be used whenever you think the query will
        return more than 1mb of data at once"""
    all_items = []
    items, last_evaluated_key = query_items_paginated(
        key_condition_expression,
        filter_expression=filter_expression,
        projection_expression=projection_expression,
        table=table,
        index_name=index_name,
        expr_attr_names=expr_attr_names
    )
    all_items.extend(items)

    while last_evaluated_key is not None:
        items, last_evaluated_key = query_items_paginated(
            key_condition_expression,
            filter_expression=filter_expression,
            projection_expression=projection_expression,
            table=table,
            index_name=index_name,
            expr_attr_names=expr_attr_names,
            start_key=last_evaluated_key
        )
        all_items.extend(items)

    return all_items


def transact_put(item: Dict, condition=None, conflict_message: str = None) -> Dict:
    return {'Put': {'Item': item}, 'condition': condition, 'conflict_message': conflict_message}


def transact_delete(partkey: str, sortkey: str, condition=None, conflict_message: str = None) -> Dict:
    return {'Delete': {'Key': {'partkey': partkey, 'sortkey': sortkey}}, 'condition': condition,
            'conflict_message': conflict_message}


def _serialize_transact_item(action: Dict, table_name: str) -> Dict:
    serializer = TypeSerializer()
    operation = 'Put' if 'Put' in action else 'Delete'
    body = action[operation]
    low_level = {'TableName': table_name}
    if operation == 'Put':
        low_level['Item'] = {key: serializer.serialize(value) for key, value in body['Item'].items()}
    else:
        low_level['Key'] = {key: serializer.serialize(value) for key, value in body['Key'].items()}

    if action.get('condition') is not None:
        expression, names, values = ConditionExpressionBuilder().build_expression(action['condition'])
        low_level['ConditionExpression'] = expression
        low_level['ExpressionAttributeNames'] = names
        if values:
            low_level['ExpressionAttributeValues'] = {
                key: serializer.serialize(value) for key, value in values.items()
            }
    return {operation: low_level}


def transact_write(actions: List[Dict], table=get_gen_table):
    """
    All-or-nothing write of up to 100 Put/Delete actions built with transact_put/transact_delete.
    A failed condition is raised as ConflictException with the action's conflict_message
    """
    if not actions:
        return
    if len(actions) > MAX_TRANSACTION_ITEMS:
        raise exceptions.ValidationException(
            f'La operación requiere {len(actions)} escrituras, el máximo es {MAX_TRANSACTION_ITEMS}')
    db_table = table()
    transact_items = [_serialize_transact_item(action, db_table.name) for action in actions]
    try:
        db_table.meta.client.transact_write_items(TransactItems=transact_items)
    except ClientError as error:
        if error.response.get('Error', {}).get('Code') != 'TransactionCanceledException':
            raise
        reasons = error.response.get('CancellationReasons', [])
        for action, reason in zip(actions, reasons):
            if reason.get('Code') == 'ConditionalCheckFailed':
                logger.warning(f"transact_write ::: condition failed for {action.get('Put') or action.get('Delete')}")
                raise exceptions.ConflictException(action.get('conflict_message') or 'Conflicto al guardar los datos')
        raise
    logger.info(f"transact_write ::: {len(transact_items)} actions written")


def transact_write_in_chunks(actions: List[Dict], table=get_gen_table):
    """
    Writes any number of Put/Delete actions as consecutive transactions of up to 100 actions.
    Conditional actions should come first, so they are checked before anything else is written.
    If a chunk fails, the items put by the committed chunks are deleted again and the error is raised
    """
    committed = []
    for start in range(0, len(actions), MAX_TRANSACTION_ITEMS):
        chunk = actions[start:start + MAX_TRANSACTION_ITEMS]
        try:
            transact_write(chunk, table=table)
        except Exception as error:
            log_exception(error, msg=f'transact_write_in_chunks ::: chunk {start // MAX_TRANSACTION_ITEMS + 1} '
                                     f'failed, removing {len(committed)} written items')
            for action in reversed(committed):
                if 'Put' in action:
                    delete_db_record(action['Put']['Item']['partkey'], action['Put']['Item']['sortkey'],
                                     table=table)
            raise
        committed.extend(chunk)
