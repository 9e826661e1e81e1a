import os

import boto3

from chalicelib.constants import keys_structure


def create_gen_table(table_name: str):
    """
    The general table with its two GSIs, as deployed
    """
    dynamodb = boto3.resource('dynamodb', region_name=os.environ['AWS_REGION'])
    table = dynamodb.create_table(
        TableName=table_name,
        KeySchema=[
            {'AttributeName': 'partkey', 'KeyType': 'HASH'},
            {'AttributeName': 'sortkey', 'KeyType': 'RANGE'},
        ],
        AttributeDefinitions=[
            {'AttributeName': 'partkey', 'AttributeType': 'S'},
            {'AttributeName': 'sortkey', 'AttributeType': 'S'},
            {'AttributeName': 'id_', 'AttributeType': 'S'},
            {'AttributeName': 'record_type', 'AttributeType': 'S'},
            {'AttributeName': 'created_at', 'AttributeType': 'S'},
        ],
        GlobalSecondaryIndexes=[
            {
                'IndexName': keys_structure.gsi_id_index,
                'KeySchema': [{'AttributeName': 'id_', 'KeyType': 'HASH'}],
                'Projection': {'ProjectionType': 'ALL'},
            },
            {
                'IndexName': keys_structure.gsi_record_type_index,
                'KeySchema': [
                    {'AttributeName': 'record_type', 'KeyType': 'HASH'},
                    {'AttributeName': 'created_at', 'KeyType': 'RANGE'},
                ],
                'Projection': {'ProjectionType': 'ALL'},
            },
        ],
        BillingMode='PAY_PER_REQUEST',
    )
    table.wait_until_exists()
    return table


def create_images_bucket(bucket_name: str):
    s3_client = boto3.client('s3', region_name=os.environ['AWS_REGION'])
    s3_client.create_bucket(Bucket=bucket_name)
    return s3_client
