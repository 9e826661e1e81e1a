import copy
import os
from io import BytesIO
from typing import Tuple, Dict

from PIL import Image, UnidentifiedImageError

from chalicelib.constants.constants import MAIN_IMAGE_NAME, THUMB_IMAGE_NAME, PRODUCT_IMAGES_PATH
from chalicelib.utils.exceptions import ValidationException
from chalicelib.utils.logger import logger
from chalicelib.utils.s3 import upload_file_to_s3


def get_resize_width_height(image: Image, max_width: int) -> Tuple[int, int]:
    width, height = image.size
    divider = max(max([width, height]) / max_width, 1)
    return int(width / divider), int(height / divider)


def get_thumbnail(image: Image) -> Image:
    image_thumb = copy.deepcopy(image)
    width, height = get_resize_width_height(image_thumb, int(os.environ.get('MAX_THUMBNAIL_WIDTH', 256)))
    image_thumb.thumbnail(size=(width, height))
    return image_thumb


def compress_images(image_file_obj: BytesIO) -> Tuple[bytes, bytes]:
    try:
        image: Image = Image.open(image_file_obj)
        image.load()
    except (UnidentifiedImageError, OSError):
        raise ValidationException('El archivo enviado no es una imagen válida')
    # JPEG has no alpha channel
    if image.mode != 'RGB':
        image = image.convert('RGB')
    image = image.resize(size=get_resize_width_height(image, int(os.environ.get('MAX_IMG_WIDTH', 1024))))

    image_thumb: Image = get_thumbnail(image)

    buf_main = BytesIO()
    image.save(buf_main, format='JPEG', optimize=True, quality=85)

    buf_thumb = BytesIO()
    image_thumb.save(buf_thumb, format='JPEG', optimize=True, quality=85)

    return buf_main.getvalue(), buf_thumb.getvalue()


def upload_product_image(product_id: str, image_file: Dict) -> Tuple[str, str]:
    """
    Compresses an uploaded product image and stores main image and thumbnail in S3
    :return:
    s3 keys of the main image and the thumbnail
    """
    content_main, content_thumb = compress_images(BytesIO(image_file['content']))
    product_path = PRODUCT_IMAGES_PATH.format(product_id=product_id)
    path_main, path_thumb = f'{product_path}/{MAIN_IMAGE_NAME}', f'{product_path}/{THUMB_IMAGE_NAME}'

    upload_file_to_s3(content_main, path_main, 'image/jpeg')
    upload_file_to_s3(content_thumb, path_thumb, 'image/jpeg')
    logger.info(f"upload_product_image ::: {product_id=} image {image_file.get('filename')} uploaded")
    return path_main, path_thumb
