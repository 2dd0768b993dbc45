HTML = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <style>
        body {{
            font-family: Arial, sans-serif;
            line-height: 1.6;
            color: #333;
        }}
        .container {{
            width: 90%;
            margin: 20px auto;
            border: 1px solid #ddd;
            border-radius: 8px;
            overflow: hidden;
        }}
        .header {{
            background-color: #d90429;
            color: white;
            padding: 20px;
            text-align: center;
        }}
        .content {{
            padding: 30px;
        }}
        .content th, .content td {{
            padding: 12px;
            border: 1px solid #eee;
            text-align: left;
        }}
        .footer {{
            padding: 20px;
            text-align: center;
            font-size: 0.9em;
            color: #777;
            background-color: #f9f9f9;
        }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h2>EMERGENCY: SOS Alert</h2>
        </div>
        <div class="content">
            <p>Dear {contact_name},</p>
            <p><strong>{user_name}</strong> activated an emergency SOS and has not responded since
            {activated_at}. You are listed as their emergency contact ({relationship}).</p>

            <h3>Alert Details:</h3>
            <table>
                <tr>
                    <th>Last Known Location</th>
                    <td>{location}</td>
                </tr>
                <tr>
                    <th>Nearby Facilities Alerted</th>
                    <td>{facilities}</td>
                </tr>
            </table>

            <p style="margin-top: 20px;">Please try to reach them immediately or call your local emergency number.</p>
        </div>
        <div class="footer">
            <p>This alert was sent automatically by the Delphi Health SOS service.</p>
        </div>
    </div>
</body>
</html>
"""
