import os
import tempfile

from chalicelib.utils.boto_clients import s3_client
from chalicelib.utils.logger import logger


def images_bucket():
    return os.environ["IMAGES_BUCKET_NAME"]


def image_url(file_path):
    if not file_path:
        return None
    base_url = os.environ.get('IMAGES_BASE_URL') or f'https://{images_bucket()}.s3.amazonaws.com'
    return f"{base_url.rstrip('/')}/{file_path}"


def upload_file_to_s3(body, file_path, content_type):
    with tempfile.TemporaryFile() as tf:
        tf.write(body)
        tf.seek(0)
        s3_client.upload_fileobj(tf, images_bucket(), f'{file_path}', ExtraArgs={'ContentType': content_type})
        s3_client.put_object_acl(ACL='public-read', Bucket=images_bucket(), Key=f'{file_path}')
    logger.info(f'upload_file_to_s3:: SUCCESS, file_path:{file_path} ')
    return file_path
