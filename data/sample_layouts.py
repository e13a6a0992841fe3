"""
Sample seat layout documents in the row-keyed shape the admin tool exports
"""


def business_2x2(price: float = 2500.0) -> dict:
    """
    "2x2 Business Class": nine rows of two window seats split by a double
    aisle, then a full back bench of four seats
    """
    layout = {}
    seats = []
    for row in range(9):
        number = row + 1
        left, right = f"{number}A", f"{number}B"
        layout[f"row{row}"] = [left, "A", "A", right]
        seats.append({'seatNumber': left, 'type': 'WINDOW', 'price': price,
                      'isPremiumSeat': row == 0})
        seats.append({'seatNumber': right, 'type': 'WINDOW', 'price': price,
                      'isPremiumSeat': False})

    layout["row9"] = ["10A", "10B", "10C", "10D"]
    seats.extend([
        {'seatNumber': '10A', 'type': 'WINDOW', 'price': price},
        {'seatNumber': '10B', 'type': 'MIDDLE', 'price': price},
        {'seatNumber': '10C', 'type': 'MIDDLE', 'price': price},
        {'seatNumber': '10D', 'type': 'WINDOW', 'price': price, 'isPremiumSeat': True},
    ])

    return {
        'id': 'layout_2x2_business',
        'name': '2x2 Business Class',
        'rows': 10,
        'columns': 4,
        'layout': layout,
        'seats': seats,
    }


def sleeper_1x2(lower_price: float = 4500.0, upper_price: float = 4000.0) -> dict:
    """"1x2 Sleeper": lower berth on the left, upper berth on the right"""
    layout = {}
    seats = []
    for row in range(8):
        number = row + 1
        layout[f"row{row}"] = [f"{number}A", "A", f"{number}B"]
        seats.append({'seatNumber': f"{number}A", 'type': 'LOWER_BERTH', 'price': lower_price})
        seats.append({'seatNumber': f"{number}B", 'type': 'UPPER_BERTH', 'price': upper_price})

    return {
        'id': 'layout_1x2_sleeper',
        'name': '1x2 Sleeper',
        'rows': 8,
        'columns': 3,
        'layout': layout,
        'seats': seats,
    }


def standard_2x2(rows: int = 10, price: float = 0.0) -> dict:
    """Plain list-of-rows grid with an empty-string aisle; seats priced by the schedule fare"""
    grid = []
    seats = []
    for row in range(rows):
        number = row + 1
        labels = [f"{number}A", f"{number}B", f"{number}C", f"{number}D"]
        grid.append([labels[0], labels[1], "", labels[2], labels[3]])
        for column, (label, category) in enumerate(
            zip(labels, ['window', 'aisle', 'aisle', 'window'])
        ):
            seats.append({
                'seatNumber': label,
                'row': row,
                'column': column if column < 2 else column + 1,
                'category': category,
                'basePrice': price,
                'isAccessible': row == 0,
            })

    return {
        'layoutId': f'layout_standard_{rows}x5',
        'name': 'Standard 2x2',
        'rows': rows,
        'columns': 5,
        'grid': grid,
        'seats': seats,
    }


SAMPLE_LAYOUTS = {
    'business': business_2x2,
    'sleeper': sleeper_1x2,
    'standard': standard_2x2,
}
