"""
Utility functions for catalog operations
"""
import os
import uuid

from django.utils import timezone
from django.utils.text import slugify


def generate_unique_slug(model, value, instance_pk=None, max_length=200):
    """Slugify value and append -2, -3, ... until it is unique for model"""
    base_slug = slugify(value)[:max_length] or uuid.uuid4().hex[:8]
    slug = base_slug
    counter = 1
    queryset = model.objects.all()
    if instance_pk:
        queryset = queryset.exclude(pk=instance_pk)
    while queryset.filter(slug=slug).exists():
        counter += 1
        slug = f"{base_slug}-{counter}"
    return slug


def normalize_option_list(values):
    """Trim values, drop empties and duplicates, keep first-seen order"""
    if not values:
        return []
    if isinstance(values, str):
        values = values.split(',')
    result = []
    for value in values:
        cleaned = str(value).strip()
        if cleaned and cleaned not in result:
            result.append(cleaned)
    return result


def product_image_upload_to(instance, filename):
    """product-images/<timestamp>-<random>.<ext>"""
    ext = os.path.splitext(filename)[1].lower().lstrip('.') or 'jpg'
    timestamp = int(timezone.now().timestamp() * 1000)
    return f"product-images/{timestamp}-{uuid.uuid4().hex[:13]}.{ext}"
